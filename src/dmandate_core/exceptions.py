"""Unified exception hierarchy for dmandate.

All dmandate-specific exceptions inherit from DMandateException, enabling:
- Consistent error handling in the scheduler, executor and CLI
- Machine-readable error codes for log records and notifications
- Mapping of raw Solana RPC / program failures to typed exceptions

Usage:
    from dmandate_core.exceptions import (
        DMandateException,
        ProgramError,
        exception_from_rpc_error,
    )

    try:
        signature = await client.send_raw_transaction(wire)
    except LedgerRPCError as e:
        raise exception_from_rpc_error(e, e.details.get("err"))
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)


class DMandateException(Exception):
    """Base exception for all dmandate errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "CONFIGURATION_ERROR")
        details: Optional additional context
    """

    error_code: str = "DMANDATE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dict."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration & Startup Errors
# =============================================================================

class ConfigurationError(DMandateException):
    """Invalid or missing configuration value."""

    error_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details=details)


class CredentialError(DMandateException):
    """Signing credential could not be loaded."""

    error_code = "CREDENTIAL_ERROR"

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, details=details)


class SchedulerStartupError(DMandateException):
    """Scheduler could not enter the running state."""

    error_code = "SCHEDULER_STARTUP_ERROR"


class InvalidAddressError(DMandateException):
    """Malformed account address or derivation input."""

    error_code = "INVALID_ADDRESS"


# =============================================================================
# Ledger Errors
# =============================================================================

class LedgerError(DMandateException):
    """Base class for ledger gateway errors."""

    error_code = "LEDGER_ERROR"


class LedgerTransportError(LedgerError):
    """The RPC endpoint could not be reached."""

    error_code = "LEDGER_TRANSPORT_ERROR"


class LedgerRPCError(LedgerError):
    """The RPC endpoint answered with a JSON-RPC error."""

    error_code = "LEDGER_RPC_ERROR"

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        rpc_code: Optional[int] = None,
        logs: Optional[Sequence[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if method:
            details["method"] = method
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        self.logs = list(logs or [])
        super().__init__(message, details=details)


class TransactionTimeoutError(LedgerError):
    """A submitted transaction was not confirmed in time."""

    error_code = "TRANSACTION_TIMEOUT"

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if signature:
            details["signature"] = signature
        self.signature = signature
        super().__init__(message, details=details)


class AccountNotFoundError(LedgerError):
    """Requested account does not exist on the ledger."""

    error_code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_type: str, address: str) -> None:
        super().__init__(
            f"{account_type} '{address}' not found",
            details={"account_type": account_type, "address": address},
        )


class AccountDecodeError(LedgerError):
    """Account data does not match the expected layout."""

    error_code = "ACCOUNT_DECODE_ERROR"


class ProgramErrorCode(IntEnum):
    """Custom error codes raised by the dmandate program."""

    PAYMENT_TOO_EARLY = 6000
    UNAUTHORIZED = 6001
    INVALID_PAYMENT_HISTORY = 6002
    MANDATE_INACTIVE = 6003
    INVALID_AUTHORITY = 6004
    NAME_TOO_LONG = 6005
    DESCRIPTION_TOO_LONG = 6006
    INSUFFICIENT_BALANCE = 6007
    # Not program codes: failures surfaced by the system / token programs
    # while executing a dmandate instruction.
    ACCOUNT_ALREADY_IN_USE = -1
    TOKEN_INSUFFICIENT_FUNDS = -2


PROGRAM_ERROR_NAMES: dict[ProgramErrorCode, str] = {
    ProgramErrorCode.PAYMENT_TOO_EARLY: "PaymentTooEarly",
    ProgramErrorCode.UNAUTHORIZED: "Unauthorized",
    ProgramErrorCode.INVALID_PAYMENT_HISTORY: "InvalidPaymentHistory",
    ProgramErrorCode.MANDATE_INACTIVE: "MandateInactive",
    ProgramErrorCode.INVALID_AUTHORITY: "InvalidAuthority",
    ProgramErrorCode.NAME_TOO_LONG: "NameTooLong",
    ProgramErrorCode.DESCRIPTION_TOO_LONG: "DescriptionTooLong",
    ProgramErrorCode.INSUFFICIENT_BALANCE: "InsufficientBalance",
    ProgramErrorCode.ACCOUNT_ALREADY_IN_USE: "PaymentRecordExists",
    ProgramErrorCode.TOKEN_INSUFFICIENT_FUNDS: "TokenInsufficientFunds",
}


class ProgramError(LedgerError):
    """The dmandate program rejected the transaction."""

    error_code = "PROGRAM_ERROR"

    def __init__(
        self,
        code: ProgramErrorCode,
        message: Optional[str] = None,
        logs: Optional[Sequence[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.name = PROGRAM_ERROR_NAMES[code]
        self.logs = list(logs or [])
        details = details or {}
        details["program_error"] = self.name
        super().__init__(message or f"Program rejected transaction: {self.name}", details=details)

    @property
    def is_not_yet_due(self) -> bool:
        return self.code == ProgramErrorCode.PAYMENT_TOO_EARLY

    @property
    def is_insufficient_balance(self) -> bool:
        return self.code in (
            ProgramErrorCode.INSUFFICIENT_BALANCE,
            ProgramErrorCode.TOKEN_INSUFFICIENT_FUNDS,
        )


# =============================================================================
# Error Mapping
# =============================================================================

# SPL token program: TokenError::InsufficientFunds
_TOKEN_INSUFFICIENT_FUNDS = 1
# System program: SystemError::AccountAlreadyInUse
_SYSTEM_ACCOUNT_ALREADY_IN_USE = 0

SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAMS = (
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb",
)

# Patterns checked against preflight logs when no custom code is available
LOG_ERROR_PATTERNS: dict[str, ProgramErrorCode] = {
    "paymenttooearly": ProgramErrorCode.PAYMENT_TOO_EARLY,
    "insufficientbalance": ProgramErrorCode.INSUFFICIENT_BALANCE,
    "error: insufficient funds": ProgramErrorCode.TOKEN_INSUFFICIENT_FUNDS,
    "already in use": ProgramErrorCode.ACCOUNT_ALREADY_IN_USE,
    "mandateinactive": ProgramErrorCode.MANDATE_INACTIVE,
    "unauthorized": ProgramErrorCode.UNAUTHORIZED,
}


def custom_error_code(err: Any) -> Optional[int]:
    """Extract the custom code from a transaction error object.

    Solana reports instruction failures as
    ``{"InstructionError": [index, {"Custom": code}]}``.
    """
    if not isinstance(err, dict):
        return None
    instruction_error = err.get("InstructionError")
    if not isinstance(instruction_error, (list, tuple)) or len(instruction_error) != 2:
        return None
    inner = instruction_error[1]
    if isinstance(inner, dict) and isinstance(inner.get("Custom"), int):
        return inner["Custom"]
    return None


def _code_from_logs(logs: Sequence[str]) -> Optional[ProgramErrorCode]:
    joined = "\n".join(logs).lower()
    for pattern, code in LOG_ERROR_PATTERNS.items():
        if pattern in joined:
            return code
    return None


def failing_program(logs: Sequence[str]) -> Optional[str]:
    """Program ID from the first ``Program <id> failed`` log line.

    CPI failures are logged innermost first, so this is the program that
    actually raised the error.
    """
    for line in logs:
        parts = line.split()
        if len(parts) >= 3 and parts[0] == "Program" and parts[2].startswith("failed"):
            return parts[1]
    return None


def program_error_from_tx_error(
    err: Any,
    logs: Optional[Sequence[str]] = None,
) -> Optional[ProgramError]:
    """Map a transaction error (+ logs) to a ProgramError, if recognizable."""
    logs = list(logs or [])
    code = custom_error_code(err)

    if code is not None:
        try:
            return ProgramError(ProgramErrorCode(code), logs=logs)
        except ValueError:
            pass
        from_logs = _code_from_logs(logs)
        if from_logs is not None:
            return ProgramError(from_logs, logs=logs)
        # Custom(1) is also the system program's ResultWithNegativeLamports
        failed = failing_program(logs)
        if code == _SYSTEM_ACCOUNT_ALREADY_IN_USE and failed == SYSTEM_PROGRAM:
            return ProgramError(ProgramErrorCode.ACCOUNT_ALREADY_IN_USE, logs=logs)
        if code == _TOKEN_INSUFFICIENT_FUNDS and failed in TOKEN_PROGRAMS:
            return ProgramError(ProgramErrorCode.TOKEN_INSUFFICIENT_FUNDS, logs=logs)
        return None

    from_logs = _code_from_logs(logs)
    if from_logs is not None:
        return ProgramError(from_logs, logs=logs)
    return None


def exception_from_rpc_error(
    error: LedgerRPCError,
    err: Any = None,
) -> LedgerError:
    """Convert a JSON-RPC error to the most specific ledger exception.

    ``sendTransaction`` preflight failures carry the transaction error and the
    simulation logs in ``error.data``; those become ProgramError when the
    failure is one the dmandate program (or its CPIs) raised.

    Args:
        error: The RPC error raised by the client
        err: Optional transaction error object (``data.err``)

    Returns:
        ProgramError if recognizable, otherwise the original error
    """
    mapped = program_error_from_tx_error(err, error.logs)
    if mapped is not None:
        mapped.details.update(error.details)
        return mapped
    return error
