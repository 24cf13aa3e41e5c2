"""Write-side services. Each flushes within the caller's transaction."""

from fuel_kernel.services.allocation import AllocationService
from fuel_kernel.services.correction import CorrectionService
from fuel_kernel.services.fuel_operations import FuelOperationService
from fuel_kernel.services.lot_ledger import LotLedgerService
from fuel_kernel.services.override_tokens import OverrideTokenService
from fuel_kernel.services.transaction_runner import TransactionRunner, is_retryable_error

__all__ = [
    "AllocationService",
    "CorrectionService",
    "FuelOperationService",
    "LotLedgerService",
    "OverrideTokenService",
    "TransactionRunner",
    "is_retryable_error",
]
