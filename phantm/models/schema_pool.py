"""
Schema pool registry model

One row per provisioned or retired tenant schema. Lives in the shared
``common`` schema next to the tenant schemas it tracks.
"""
from sqlalchemy import String, DateTime, CheckConstraint, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional
import uuid

from phantm.database import Base

POOL_SCHEMA = "common"
POOL_TABLE = "schema_pool"


class SchemaPool(Base):
    """
    Tracking row for a tenant schema.

    status is a VARCHAR holding AVAILABLE, ALLOCATED or DELETED.
    schema_name is unique across every row, deleted ones included.
    """
    __tablename__ = POOL_TABLE
    __table_args__ = (
        CheckConstraint(
            "status IN ('AVAILABLE', 'ALLOCATED', 'DELETED')",
            name="ck_schema_pool_status",
        ),
        CheckConstraint(
            "updated_at IS NULL OR created_at <= updated_at",
            name="ck_schema_pool_updated_after_created",
        ),
        Index("idx_schema_pool_status", "status"),
        Index("idx_schema_pool_created_at", "created_at"),
        {'schema': POOL_SCHEMA},
    )

    schema_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    schema_name: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="AVAILABLE", nullable=False)
    account_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    allocated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SchemaPool {self.schema_name} ({self.status})>"
