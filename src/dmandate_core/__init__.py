"""dmandate core: scheduler and batch payment executor for recurring Solana mandates."""
from dmandate_core.batch import BatchFailure, BatchResult, BatchRunner
from dmandate_core.config import ProcessorSettings, build_settings, load_settings
from dmandate_core.derivation import (
    find_mandate_address,
    find_payment_record_address,
    find_token_holding_address,
    find_user_address,
)
from dmandate_core.exceptions import (
    AccountDecodeError,
    AccountNotFoundError,
    ConfigurationError,
    CredentialError,
    DMandateException,
    InvalidAddressError,
    LedgerError,
    ProgramError,
    ProgramErrorCode,
    SchedulerStartupError,
)
from dmandate_core.executor import PaymentExecutor
from dmandate_core.gateway import LedgerGateway, SolanaLedgerGateway
from dmandate_core.models import (
    FailureReason,
    Mandate,
    OutcomeKind,
    PaymentOutcome,
    PaymentRecord,
    UserAccount,
)
from dmandate_core.payability import is_payable, select_due
from dmandate_core.scheduler import MandateScheduler, SchedulerState

__version__ = "0.1.0"

__all__ = [
    "BatchFailure",
    "BatchResult",
    "BatchRunner",
    "ProcessorSettings",
    "build_settings",
    "load_settings",
    "find_mandate_address",
    "find_payment_record_address",
    "find_token_holding_address",
    "find_user_address",
    "AccountDecodeError",
    "AccountNotFoundError",
    "ConfigurationError",
    "CredentialError",
    "DMandateException",
    "InvalidAddressError",
    "LedgerError",
    "ProgramError",
    "ProgramErrorCode",
    "SchedulerStartupError",
    "PaymentExecutor",
    "LedgerGateway",
    "SolanaLedgerGateway",
    "FailureReason",
    "Mandate",
    "OutcomeKind",
    "PaymentOutcome",
    "PaymentRecord",
    "UserAccount",
    "is_payable",
    "select_due",
    "MandateScheduler",
    "SchedulerState",
]
