"""Branch locations and the services offered for online booking."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from dentbook.db.base import BaseNoId, TimestampMixin


class Location(BaseNoId, TimestampMixin):
    """A clinic branch. Reference data, seeded and read-only at runtime."""

    __tablename__ = "locations"

    # Stable slug shared with the booking UI (e.g. "tepic")
    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    address: Mapped[str | None] = mapped_column(
        String(300),
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Location {self.id}>"


class Service(BaseNoId, TimestampMixin):
    """A bookable dental service."""

    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    # Localized display name
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    display_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Service {self.id}>"
