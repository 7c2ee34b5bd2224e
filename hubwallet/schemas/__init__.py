from .health import HealthCheckResponse
from .wallet import (
    AppliedResult,
    DuplicateResult,
    InfrastructureFailure,
    InsufficientBalance,
    LedgerResult,
    TransactionIntent,
    WalletSnapshot,
)
