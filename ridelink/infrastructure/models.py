"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``         -- companies and vendors (one table, ``user_type``)
* ``partnerships``  -- company <-> vendor authorisation, unique per pair
* ``bookings``      -- ride bookings and their lifecycle status

Indexes
-------
* **B-Tree** on ``status``, ``company_id``, ``vendor_id`` for the pending /
  ongoing list queries and the partnership fan-out lookup.
"""

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base
from ridelink.domain.entities import utcnow
from ridelink.domain.enums import ActorType, BookingStatus, PartnershipStatus


def _uuid() -> str:
    return str(uuid.uuid4())


def _values(enum_cls):
    # store the lowercase wire values, not the member names
    return [member.value for member in enum_cls]


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False)
    user_type = Column(
        Enum(ActorType, name="actortype", values_callable=_values), nullable=False
    )
    company_name = Column(String(255), nullable=True)
    vendor_name = Column(String(255), nullable=True)
    phone = Column(String(40), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("idx_users_type", "user_type"),)


class PartnershipModel(Base):
    __tablename__ = "partnerships"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(
        Enum(PartnershipStatus, name="partnershipstatus", values_callable=_values),
        default=PartnershipStatus.ACTIVE,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("company_id", "vendor_id", name="uq_partnerships_pair"),
        Index("idx_partnerships_company", "company_id", "status"),
        Index("idx_partnerships_vendor", "vendor_id", "status"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    pickup_location = Column(Text, nullable=False)
    dropoff_location = Column(Text, nullable=False)
    pickup_time = Column(DateTime(timezone=True), nullable=False)
    passenger_count = Column(Integer, default=1, nullable=False)
    passenger_name = Column(String(255), nullable=True)
    passenger_phone = Column(String(40), nullable=True)
    vehicle_type = Column(String(40), nullable=True)
    special_requirements = Column(Text, nullable=True)

    status = Column(
        Enum(BookingStatus, name="bookingstatus", values_callable=_values),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    price = Column(Float, nullable=True)
    current_location = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_company", "company_id"),
        Index("idx_bookings_vendor", "vendor_id"),
    )


TABLES = {
    UserModel.__tablename__: UserModel,
    PartnershipModel.__tablename__: PartnershipModel,
    BookingModel.__tablename__: BookingModel,
}
