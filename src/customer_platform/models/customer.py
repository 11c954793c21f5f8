from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from customer_platform.database.base import Base, TimestampMixin
from .status import ACTIVE_STATUS
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .account import Account
    from .user import User


class Customer(TimestampMixin, Base):
    """
    SQLAlchemy model for Customer.

    Top-level business party; owns accounts and (customer-side) users.
    """

    __tablename__ = "customer"

    customer_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    customer_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    customer_class: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )

    # Public business key, unique across customers
    reference_number: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=ACTIVE_STATUS,
        nullable=False,
        index=True
    )

    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="customer",
        lazy="select"
    )

    users: Mapped[list["User"]] = relationship(
        "User",
        back_populates="customer",
        lazy="select"
    )

    def __repr__(self) -> str:
        return f"<Customer(customer_id={self.customer_id!r}, customer_name={self.customer_name!r})>"
