"""
Site-visit appointment model
"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class Appointment(Base):
    """Site visit gating the balance payment of a reservation"""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)

    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(String(5), nullable=False)  # HH:MM
    requester_notes = Column(Text, nullable=True)

    # Status workflow:
    # requested -> accepted | rejected | rescheduled
    # rescheduled -> accepted (requester agrees) | cancelled (requester declines)
    # accepted -> completed | no_show | rescheduled
    status = Column(String(20), default="requested", nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)

    # Owner's counter-proposal
    reschedule_date = Column(Date, nullable=True)
    reschedule_time = Column(String(5), nullable=True)
    reschedule_reason = Column(Text, nullable=True)

    # Anti-circumvention consent scoped to this appointment
    anti_circumvention_accepted = Column(Boolean, default=False, nullable=False)
    anti_circumvention_accepted_at = Column(DateTime, nullable=True)
    anti_circumvention_ip = Column(String(64), nullable=True)
    anti_circumvention_user_agent = Column(String(500), nullable=True)
    anti_circumvention_version = Column(String(20), nullable=True)

    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    reservation = relationship("Reservation", back_populates="appointments")
