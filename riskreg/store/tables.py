"""SQLAlchemy models backing the SQL entity store.

All tables register on one MetaData instance so Alembic manages them in a
single migration chain.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

metadata = MetaData()


class Base(DeclarativeBase):
    """Base class for all register tables, using shared metadata."""
    metadata = metadata


class RowRecord(Base):
    """One risk × process combination."""
    __tablename__ = "register_rows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    risk_id: Mapped[str] = mapped_column(String(64), nullable=False)
    process_id: Mapped[str] = mapped_column(String(64), nullable=False)
    risk_name: Mapped[str] = mapped_column(String(255), default="")
    process_name: Mapped[str] = mapped_column(String(255), default="")
    gross_probability: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    gross_impact: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    risk_appetite: Mapped[int] = mapped_column(Integer, default=9)

    __table_args__ = (
        UniqueConstraint("risk_id", "process_id", name="uq_register_rows_pair"),
    )

    def __repr__(self) -> str:
        return f"<RowRecord(id={self.id}, risk_id='{self.risk_id}', process_id='{self.process_id}')>"


class ControlRecord(Base):
    """Embedded (owner_row_id set) or hub (owner_row_id null) control."""
    __tablename__ = "register_controls"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    control_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    net_probability: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    net_impact: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assigned_tester_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    test_frequency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    test_procedure: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_row_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("register_rows.id", ondelete="CASCADE"), nullable=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        Index("idx_register_controls_owner", "owner_row_id"),
    )

    def __repr__(self) -> str:
        return f"<ControlRecord(id={self.id}, name='{self.name}')>"


class ControlLinkRecord(Base):
    """Hub control ↔ row association with optional score overrides."""
    __tablename__ = "register_control_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    row_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("register_rows.id", ondelete="CASCADE"), nullable=False
    )
    control_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("register_controls.id", ondelete="CASCADE"), nullable=False
    )
    net_probability: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    net_impact: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("row_id", "control_id", name="uq_register_control_links_pair"),
        Index("idx_register_control_links_control", "control_id"),
    )


class PendingChangeRecord(Base):
    """Submitted control edits awaiting manager review."""
    __tablename__ = "register_pending_changes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False, default="control")
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False, default="update")
    proposed_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    current_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    resolved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')"),
        CheckConstraint("change_type IN ('update')"),
        Index("idx_register_pending_changes_status", "status"),
        Index("idx_register_pending_changes_entity", "entity_id"),
    )
