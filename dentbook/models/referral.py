"""Referral codes handed out by existing patients."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from dentbook.db.base import Base, TimestampMixin


class ReferralCode(Base, TimestampMixin):
    """A referral code owned by a patient. Read-only for scheduling."""

    __tablename__ = "referral_codes"

    # Stored uppercase so lookups are case-insensitive
    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    referrer_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    # Owning patient in the clinical records system
    referrer_patient_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ReferralCode {self.code}>"
