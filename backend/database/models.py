"""
Database Models - SQLAlchemy ORM
Tables for work requests, their line items and status history
"""
from datetime import date, datetime
from typing import Optional
from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
)
from sqlalchemy.orm import Mapped, mapped_column

from .connection import Base


def now_seconds() -> datetime:
    """Local time truncated to whole seconds (YYYY-MM-DD HH:MM:SS)."""
    return datetime.now().replace(microsecond=0)


# ==================== REQUEST MODEL ====================

class WorkRequest(Base):
    """Work request - one row per submitted request, including workflow fields"""
    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    request_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    task_priority: Mapped[str] = mapped_column(String(10), nullable=False)
    date_of_request: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    facility_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    receiver_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    qawr_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    jira_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    lot_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attention_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    returnable: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    domestic_international: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    shipping_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Sampling Request only
    sampling_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    qr_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    project_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="New", index=True)
    executor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    issue_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_seconds)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_seconds)

    __table_args__ = (
        Index('idx_requests_status_created_at', 'status', 'created_at'),
        Index('idx_requests_type_status', 'request_type', 'status'),
    )


# ==================== LINE ITEM MODELS ====================

class Lot(Base):
    """Lots - line items of Lot Transfer, Shipment and Scrap requests"""
    __tablename__ = "lots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(Integer, ForeignKey("requests.id"), nullable=False, index=True)
    lot_id: Mapped[str] = mapped_column(String(100), nullable=False)
    units_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class SamplingLot(Base):
    """Sampling lots - line items of Sampling requests"""
    __tablename__ = "sampling_lots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(Integer, ForeignKey("requests.id"), nullable=False, index=True)
    lot_id: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reliability_test: Mapped[str] = mapped_column(String(255), nullable=False)
    test_condition: Mapped[str] = mapped_column(String(255), nullable=False)
    attribute_to_tag: Mapped[str] = mapped_column(String(255), nullable=False)


# ==================== STATUS HISTORY MODEL ====================

class RequestStatusHistory(Base):
    """Status history - append-only audit trail of status transitions"""
    __tablename__ = "request_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(Integer, ForeignKey("requests.id"), nullable=False)
    old_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    executor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_seconds)

    __table_args__ = (
        Index('idx_status_history_request_created', 'request_id', 'created_at'),
    )
