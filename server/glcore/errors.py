from decimal import Decimal
from typing import Any

from fastapi import HTTPException


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


class LedgerError(ValueError):
    """Base class for every error the ledger core raises.

    Each subclass carries a stable machine-readable ``code`` and the HTTP
    status routers should answer with. Structured context goes in ``details``.
    """

    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload = {"code": self.code, "message": self.message}
        payload.update({key: _jsonable(value) for key, value in self.details.items()})
        return payload


class UnbalancedEntry(LedgerError):
    code = "UNBALANCED_ENTRY"

    def __init__(self, total_debits: Decimal, total_credits: Decimal):
        imbalance = abs(total_debits - total_credits)
        super().__init__(
            f"Journal entry is unbalanced: debits={total_debits} credits={total_credits} (off by {imbalance})",
            total_debits=total_debits,
            total_credits=total_credits,
            imbalance=imbalance,
        )
        self.total_debits = total_debits
        self.total_credits = total_credits
        self.imbalance = imbalance


class InvalidEntry(LedgerError):
    code = "INVALID_ENTRY"


class InvalidQuery(LedgerError):
    """A report or balance query with an unknown account type or an inverted date window."""

    code = "INVALID_QUERY"


class InvalidHierarchy(LedgerError):
    code = "INVALID_HIERARCHY"


class ImmutableField(LedgerError):
    code = "IMMUTABLE_FIELD"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Field '{field}' cannot be changed after creation.", field=field)
        self.field = field


class AppendOnlyViolation(LedgerError):
    code = "APPEND_ONLY"
    status_code = 409


class DuplicateAccountCode(LedgerError):
    code = "DUPLICATE_ACCOUNT_CODE"
    status_code = 409

    def __init__(self, account_code: str):
        super().__init__(f"Account code '{account_code}' already exists.", account_code=account_code)


class AccountInUse(LedgerError):
    code = "ACCOUNT_IN_USE"
    status_code = 409


class ProtectedAccount(LedgerError):
    code = "PROTECTED_ACCOUNT"
    status_code = 409


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} not found.", resource=resource, id=resource_id)


class ReportTimeout(LedgerError):
    code = "REPORT_TIMEOUT"
    status_code = 503

    def __init__(self, report: str, timeout_seconds: Decimal | float):
        super().__init__(
            f"{report} did not finish within {timeout_seconds} seconds; retry with a narrower window.",
            report=report,
            timeout_seconds=timeout_seconds,
            retriable=True,
        )


class LedgerIntegrityError(LedgerError):
    """Historical ledger data violates a double-entry invariant.

    Raised by the report integrity checks. Report generation attaches it to the
    report instead of failing the request unless the caller asks for strict mode.
    """

    code = "LEDGER_INTEGRITY"
    status_code = 500

    def __init__(self, check: str, message: str, *, expected: Decimal, actual: Decimal):
        super().__init__(
            message,
            check=check,
            expected=expected,
            actual=actual,
            difference=expected - actual,
        )
        self.check = check


def http_error(exc: LedgerError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
