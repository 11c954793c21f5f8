from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from customer_platform.database.base import Base, TimestampMixin
from .status import ACTIVE_STATUS
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .customer import Customer


class User(TimestampMixin, Base):
    """
    SQLAlchemy model for User.

    A person attached to a customer and, through `user_has_account`,
    to any number of accounts.
    """

    # "user" is a reserved word on Postgres; SQLAlchemy quotes it for us,
    # hand-written SQL must write "user" with quotes.
    __tablename__ = "user"

    user_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False
    )

    phone_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True
    )

    designation: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True
    )

    is_customer: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    customer_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("customer.customer_id"),
        nullable=True,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=ACTIVE_STATUS,
        nullable=False,
        index=True
    )

    customer: Mapped["Customer | None"] = relationship(
        "Customer",
        back_populates="users"
    )

    def __repr__(self) -> str:
        return f"<User(user_id={self.user_id!r}, email={self.email!r})>"
