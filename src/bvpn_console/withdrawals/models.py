"""SQLAlchemy model for cash-out requests."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bvpn_console.common.models import Base, generate_uuid, utcnow

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
WITHDRAWAL_STATUSES: frozenset[str] = frozenset({PENDING, APPROVED, REJECTED})


class WithdrawalModel(Base):
    __tablename__ = "withdrawals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    device_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("accounts.id"), nullable=False, index=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MMK")
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    account_number: Mapped[str] = mapped_column(String(100), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PENDING, index=True)
    transaction_id: Mapped[str | None] = mapped_column(String(40), unique=True, nullable=True)
    receipt_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "points": self.points,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "processed_at": self.processed_at,
        }
