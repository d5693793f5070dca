"""Contract repository - Database operations for contracts, signature codes and extensions"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_contract import Contract, ContractExtension, PendingOneTimeCode


class ContractRepository:
    """Repository for contract database operations"""

    @staticmethod
    def get_contract(db: Session, contract_id: int) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.id == contract_id).first()

    @staticmethod
    def get_contract_by_reservation(db: Session, reservation_id: int) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.reservation_id == reservation_id).first()

    @staticmethod
    def get_contracts(db: Session, user_id: int, status: Optional[str] = None) -> list[Contract]:
        """Contracts where the user is either party"""
        query = db.query(Contract).filter(
            or_(Contract.requester_id == user_id, Contract.owner_id == user_id)
        )
        if status:
            query = query.filter(Contract.status == status)
        return query.order_by(Contract.created_at.desc(), Contract.id.desc()).all()

    @staticmethod
    def contract_number_exists(db: Session, contract_number: str) -> bool:
        return (
            db.query(Contract.id).filter(Contract.contract_number == contract_number).first()
            is not None
        )

    @staticmethod
    def create_contract(db: Session, **contract_data) -> Contract:
        """Stage a new contract; the caller's unit of work commits it"""
        contract = Contract(**contract_data)
        db.add(contract)
        db.flush()
        return contract

    # ------------------------------------------------------------------
    # One-time signature codes
    # ------------------------------------------------------------------

    @staticmethod
    def delete_unused_codes(db: Session, user_id: int, contract_id: int) -> int:
        return (
            db.query(PendingOneTimeCode)
            .filter(
                PendingOneTimeCode.user_id == user_id,
                PendingOneTimeCode.contract_id == contract_id,
                PendingOneTimeCode.used.is_(False),
            )
            .delete(synchronize_session=False)
        )

    @staticmethod
    def create_code(db: Session, **code_data) -> PendingOneTimeCode:
        code = PendingOneTimeCode(**code_data)
        db.add(code)
        db.flush()
        return code

    @staticmethod
    def delete_expired_codes(db: Session, now: datetime) -> int:
        return (
            db.query(PendingOneTimeCode)
            .filter(PendingOneTimeCode.used.is_(False), PendingOneTimeCode.expires_at < now)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def get_latest_code(db: Session, user_id: int, contract_id: int) -> Optional[PendingOneTimeCode]:
        return (
            db.query(PendingOneTimeCode)
            .filter(
                PendingOneTimeCode.user_id == user_id,
                PendingOneTimeCode.contract_id == contract_id,
            )
            .order_by(PendingOneTimeCode.id.desc())
            .first()
        )

    # ------------------------------------------------------------------
    # Extensions
    # ------------------------------------------------------------------

    @staticmethod
    def get_latest_active_extension(db: Session, contract_id: int) -> Optional[ContractExtension]:
        return (
            db.query(ContractExtension)
            .filter(
                ContractExtension.contract_id == contract_id,
                ContractExtension.status == "active",
            )
            .order_by(ContractExtension.new_end_date.desc(), ContractExtension.id.desc())
            .first()
        )

    @staticmethod
    def get_extensions(db: Session, contract_id: int) -> list[ContractExtension]:
        return (
            db.query(ContractExtension)
            .filter(ContractExtension.contract_id == contract_id)
            .order_by(ContractExtension.id)
            .all()
        )

    @staticmethod
    def create_extension(db: Session, **extension_data) -> ContractExtension:
        extension = ContractExtension(**extension_data)
        db.add(extension)
        db.flush()
        return extension
