from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class ActionError(Exception):
    """Base class for every failure an action reports back to its caller."""

    status_code = 500
    code = "ACTION_FAILED"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_details(self) -> Dict[str, Any]:
        return {"code": self.code, **self.details}


class ValidationError(ActionError):
    """Missing or malformed input, detected before any network call."""

    status_code = 400
    code = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    code = "MISSING_FIELD"

    def __init__(self, fields: Sequence[str]) -> None:
        self.fields: List[str] = [str(item) for item in fields]
        super().__init__(
            f"Missing required fields: {', '.join(self.fields)}",
            details={"fields": list(self.fields)},
        )


class InvalidAddressError(ValidationError):
    code = "INVALID_ADDRESS"

    def __init__(self, addresses: Sequence[str], *, field: str = "recipients") -> None:
        self.addresses: List[str] = [str(item) for item in addresses]
        super().__init__(
            f"Invalid address in {field}: {', '.join(self.addresses)}",
            details={"field": field, "invalid": list(self.addresses)},
        )


class UnknownToolError(ValidationError):
    code = "UNKNOWN_TOOL"

    def __init__(self, tool_type: str, *, known: Sequence[str] = ()) -> None:
        self.tool_type = str(tool_type)
        super().__init__(
            f"Unknown tool type: {self.tool_type}",
            details={"tool": self.tool_type, "known": sorted(known)},
        )


class ConfigurationError(ActionError):
    code = "NOT_CONFIGURED"


class PreflightError(ActionError):
    """A read-only check (balance, allowance) failed before submission."""

    status_code = 400
    code = "PREFLIGHT_FAILED"


class InsufficientBalanceError(PreflightError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        *,
        balance: int,
        required: int,
        asset: str = "native",
        formatted_balance: Optional[str] = None,
        message: str = "Insufficient balance",
    ) -> None:
        self.balance = int(balance)
        self.required = int(required)
        self.shortfall = max(self.required - self.balance, 0)
        details: Dict[str, Any] = {
            "asset": asset,
            "currentBalance": str(self.balance),
            "required": str(self.required),
            "shortfall": str(self.shortfall),
        }
        if formatted_balance is not None:
            details["currentBalanceFormatted"] = formatted_balance
        super().__init__(message, details=details)


class NotFoundError(ActionError):
    status_code = 500
    code = "NOT_FOUND"


class ExpectedEventNotFoundError(NotFoundError):
    code = "EXPECTED_EVENT_NOT_FOUND"

    def __init__(self, event_name: str, *, tx_hash: str = "", argument: Optional[str] = None) -> None:
        self.event_name = event_name
        details: Dict[str, Any] = {"event": event_name, "transactionHash": tx_hash}
        if argument is None:
            message = f"{event_name} event not found in transaction receipt."
        else:
            message = f"{event_name} event has no '{argument}' argument."
            details["argument"] = argument
        super().__init__(message, details=details)


class OwnershipError(ActionError):
    status_code = 403
    code = "OWNERSHIP_ERROR"


class OwnershipMismatchError(OwnershipError):
    code = "OWNERSHIP_MISMATCH"

    def __init__(self, *, contract: str, owner: str, signer: str) -> None:
        super().__init__(
            "Signer is not the owner of the collection.",
            details={"contract": contract, "owner": owner, "signer": signer},
        )


class SubmissionError(ActionError):
    """The ledger rejected the transaction or the contract call reverted."""

    status_code = 500
    code = "SUBMISSION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        provider_code: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(details or {})
        merged["reason"] = reason
        merged["providerCode"] = provider_code
        super().__init__(message, details=merged)
        self.reason = reason
        self.provider_code = provider_code


class NetworkError(ActionError):
    """A read call or RPC round trip failed."""

    status_code = 500
    code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        provider_code: Any = None,
    ) -> None:
        super().__init__(message, details={"reason": reason, "providerCode": provider_code})
        self.reason = reason
        self.provider_code = provider_code


class CompositeActionError(ActionError):
    """A multi-step action stopped part way; `steps` says which steps landed."""

    def __init__(self, *, failed_step: str, cause: ActionError, steps: List[Dict[str, Any]]) -> None:
        super().__init__(
            f"Step '{failed_step}' failed: {cause.message}",
            details={"failedStep": failed_step, **cause.to_details()},
        )
        self.failed_step = failed_step
        self.cause = cause
        self.steps = steps
        self.status_code = cause.status_code
        self.code = cause.code
