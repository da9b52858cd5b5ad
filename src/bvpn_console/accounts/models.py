"""SQLAlchemy model for device accounts."""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bvpn_console.common.models import Base, TimestampMixin


class AccountModel(Base, TimestampMixin):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("vpn_remaining_seconds >= 0", name="ck_account_vpn_non_negative"),
    )

    # Device identifier reported by the app; never reassigned.
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vpn_remaining_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="online", index=True)
    last_seen: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    data_usage: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    device_model: Mapped[str] = mapped_column(String(255), default="")
    app_version: Mapped[str] = mapped_column(String(50), default="")
    platform: Mapped[str] = mapped_column(String(50), default="unknown")
    country: Mapped[str] = mapped_column(String(100), default="Unknown")
    ip_address: Mapped[str] = mapped_column(String(64), default="")

    ban_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_document(self) -> dict:
        """Plain-dict snapshot used for change events."""
        return {
            "id": self.id,
            "balance": self.balance,
            "vpn_remaining_seconds": self.vpn_remaining_seconds,
            "status": self.status,
            "last_seen": self.last_seen,
            "data_usage": self.data_usage,
        }
