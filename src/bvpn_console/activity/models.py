"""SQLAlchemy model for the append-only activity log."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bvpn_console.common.models import Base, generate_uuid, utcnow

ACTIVITY_TYPES: frozenset[str] = frozenset({
    "ad_reward",
    "withdrawal",
    "admin_adjustment",
})


class ActivityLogModel(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        UniqueConstraint("device_id", "sequence", name="uq_activity_device_sequence"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    device_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("accounts.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    # Hash chain, per device
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    signature: Mapped[str] = mapped_column(String(64), nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True
    )
