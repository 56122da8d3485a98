from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Float, ForeignKey, CheckConstraint

from .org import Base
from .types import UTCDateTime, utcnow


class SparePart(Base):
    __tablename__ = 'spare_parts'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    part_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default='GENERAL')
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default='SYP')
    supplier: Mapped[Optional[str]] = mapped_column(String(128))
    location: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(String(255))
    created_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='ck_spare_part_quantity_non_negative'),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity


class RequestPart(Base):
    """Parts consumed by a request.

    unit_price is a snapshot taken when the part was consumed; later price changes on
    the SparePart never flow back into existing rows.
    """
    __tablename__ = 'request_parts'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('requests.id'), nullable=False, index=True)
    spare_part_id: Mapped[int] = mapped_column(ForeignKey('spare_parts.id'), nullable=False, index=True)
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False)
    added_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint('quantity_used > 0', name='ck_request_part_quantity_positive'),)
