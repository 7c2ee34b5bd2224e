# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .account_repository import AccountRepository
from .claim_repository import ClaimRepository
from .ledger_repository import LedgerRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "ClaimRepository",
    "LedgerRepository",
]
