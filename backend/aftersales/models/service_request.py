from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Boolean, ForeignKey, Float, CheckConstraint

from .org import Base
from .types import UTCDateTime, utcnow
from aftersales.constants import roles as R


class ServiceRequest(Base):
    __tablename__ = 'requests'
    # Status constants
    STATUS_NEW = R.STATUS_NEW
    STATUS_ASSIGNED = R.STATUS_ASSIGNED
    STATUS_UNDER_INSPECTION = R.STATUS_UNDER_INSPECTION
    STATUS_WAITING_PARTS = R.STATUS_WAITING_PARTS
    STATUS_IN_REPAIR = R.STATUS_IN_REPAIR
    STATUS_COMPLETED = R.STATUS_COMPLETED
    STATUS_CLOSED = R.STATUS_CLOSED
    ALL_STATUSES = R.ALL_STATUSES

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id'), nullable=False, index=True)
    department_id: Mapped[int] = mapped_column(ForeignKey('departments.id'), nullable=False, index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey('products.id'), nullable=True)
    received_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    assigned_technician_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    issue_description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_NEW, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=R.DEFAULT_PRIORITY)
    warranty_status: Mapped[str] = mapped_column(String(32), nullable=False)
    execution_method: Mapped[str] = mapped_column(String(32), nullable=False)
    sla_due_date = mapped_column(UTCDateTime(), nullable=False, index=True)
    is_overdue: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    customer_satisfaction: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    final_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    purchase_date = mapped_column(UTCDateTime(), nullable=True)
    assigned_at = mapped_column(UTCDateTime(), nullable=True)
    started_at = mapped_column(UTCDateTime(), nullable=True)
    completed_at = mapped_column(UTCDateTime(), nullable=True)
    closed_at = mapped_column(UTCDateTime(), nullable=True)
    created_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow, index=True)
    updated_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        CheckConstraint('customer_satisfaction IS NULL OR (customer_satisfaction BETWEEN 1 AND 5)', name='ck_request_satisfaction'),
    )

    @property
    def is_finished(self) -> bool:
        return self.status in R.FINISHED_STATUSES


class RequestCost(Base):
    """Append-only cost line attached to a request."""
    __tablename__ = 'request_costs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('requests.id'), nullable=False, index=True)
    cost_type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default='SYP')
    description: Mapped[Optional[str]] = mapped_column(String(255))
    added_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint('amount > 0', name='ck_cost_amount_positive'),)


class CustomRequestStatus(Base):
    __tablename__ = 'custom_request_statuses'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
