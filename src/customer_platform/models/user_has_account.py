from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from customer_platform.database.base import Base, TimestampMixin
from .status import ACTIVE_STATUS


class UserHasAccount(TimestampMixin, Base):
    """Association between a user and an account, with its own status."""

    __tablename__ = "user_has_account"
    __table_args__ = (
        UniqueConstraint("user_id", "account_id"),
    )

    user_has_account_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user.user_id"),
        nullable=False,
        index=True
    )

    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("account.account_id"),
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=ACTIVE_STATUS,
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<UserHasAccount(user_id={self.user_id!r}, account_id={self.account_id!r}, "
            f"status={self.status!r})>"
        )
