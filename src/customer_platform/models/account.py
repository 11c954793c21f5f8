from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from customer_platform.database.base import Base, TimestampMixin
from .status import ACTIVE_STATUS
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .customer import Customer


class Account(TimestampMixin, Base):
    """
    SQLAlchemy model for Account.

    Accounts belong to a customer and may form a hierarchy through
    `parent_account_id`.
    """

    __tablename__ = "account"

    account_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    account_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )

    account_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True
    )

    parent_account_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("account.account_id"),
        nullable=True
    )

    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customer.customer_id"),
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=ACTIVE_STATUS,
        nullable=False,
        index=True
    )

    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="accounts"
    )

    def __repr__(self) -> str:
        return f"<Account(account_id={self.account_id!r}, account_name={self.account_name!r})>"
