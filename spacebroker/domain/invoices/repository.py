"""Invoice repository - Database operations for invoices"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_invoice import Invoice


class InvoiceRepository:
    @staticmethod
    def get_invoice(db: Session, invoice_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.id == invoice_id).first()

    @staticmethod
    def get_invoice_by_contract(db: Session, contract_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.contract_id == contract_id).first()

    @staticmethod
    def get_invoices(db: Session, user_id: int) -> list[Invoice]:
        """Invoices where the user is either party"""
        return (
            db.query(Invoice)
            .filter(or_(Invoice.requester_id == user_id, Invoice.owner_id == user_id))
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .all()
        )

    @staticmethod
    def invoice_number_exists(db: Session, invoice_number: str) -> bool:
        return db.query(Invoice.id).filter(Invoice.invoice_number == invoice_number).first() is not None

    @staticmethod
    def create_invoice(db: Session, **invoice_data) -> Invoice:
        invoice = Invoice(**invoice_data)
        db.add(invoice)
        db.flush()
        return invoice
