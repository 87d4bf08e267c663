"""
Repository layer - Persistence for users, receipts, groups and splits.

Services depend on the interfaces; the SQLAlchemy implementations flush but
leave committing to the caller.
"""

from .interfaces import IGroupRepository, IReceiptRepository, ISplitRepository, IUserRepository
from .sql_repository import (
    SqlGroupRepository,
    SqlReceiptRepository,
    SqlSplitRepository,
    SqlUserRepository,
)

__all__ = [
    "IGroupRepository",
    "IReceiptRepository",
    "ISplitRepository",
    "IUserRepository",
    "SqlGroupRepository",
    "SqlReceiptRepository",
    "SqlSplitRepository",
    "SqlUserRepository",
]
