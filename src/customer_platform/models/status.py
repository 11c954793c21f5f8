from enum import Enum as PyEnum


class RecordStatus(str, PyEnum):
    """Status markers stored in the `status` column of every business table."""
    ACTIVE = "ACT"
    INACTIVE = "INACTIVE"


ACTIVE_STATUS = RecordStatus.ACTIVE.value
