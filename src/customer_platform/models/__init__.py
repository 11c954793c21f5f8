r"""
Single import point for the ORM models.

Importing this package registers every table on `Base.metadata`, which the
entity resolver (`repositories.entities`) and `create_all` rely on.

    from customer_platform.models import Customer, Account, User, UserHasAccount
"""

from .customer import Customer
from .account import Account
from .user import User
from .user_has_account import UserHasAccount
from .status import RecordStatus, ACTIVE_STATUS

__all__ = [
    "Customer",
    "Account",
    "User",
    "UserHasAccount",
    "RecordStatus",
    "ACTIVE_STATUS",
]
