"""Portal data models (SQLAlchemy ORM).

Importing this package registers every table on ``Base.metadata``.
"""

from btc_portal.engine.models.base import Base, TimestampMixin
from btc_portal.engine.models.deposit import (
    DepositReceiver,
    DepositRecord,
    deposit_id,
    new_deposit_record,
)

__all__ = [
    "Base",
    "DepositReceiver",
    "DepositRecord",
    "TimestampMixin",
    "deposit_id",
    "new_deposit_record",
]
