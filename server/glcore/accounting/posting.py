from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from glcore.errors import InvalidEntry, UnbalancedEntry
from glcore.models import ENTRY_TYPES
from glcore.utils import ZERO, from_cents, to_cents


@dataclass(frozen=True)
class JournalLineInput:
    account_id: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None


@dataclass(frozen=True)
class JournalEntryInput:
    entry_date: date
    description: str
    lines: List[JournalLineInput]
    entry_type: str = "journal_entry"
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    created_by: Optional[int] = None


def validate_lines(lines: List[JournalLineInput]) -> None:
    """Shape checks that need no database access: non-empty, one direction per line, whole cents."""
    if not lines:
        raise InvalidEntry("Journal entries need at least one line.", reason="no_lines")

    for index, line in enumerate(lines):
        debit = Decimal(line.debit or 0)
        credit = Decimal(line.credit or 0)
        if debit < 0 or credit < 0:
            raise InvalidEntry(
                f"Line {index + 1}: amounts cannot be negative.", line=index, reason="negative_amount"
            )
        if (debit > 0) == (credit > 0):
            raise InvalidEntry(
                f"Line {index + 1}: exactly one of debit or credit must be nonzero.",
                line=index,
                reason="single_direction",
            )
        try:
            to_cents(debit)
            to_cents(credit)
        except ValueError as exc:
            raise InvalidEntry(f"Line {index + 1}: {exc}", line=index, reason="sub_cent_amount") from exc


def ensure_balanced(lines: List[JournalLineInput]) -> None:
    debit_cents = sum(to_cents(line.debit) for line in lines)
    credit_cents = sum(to_cents(line.credit) for line in lines)
    if debit_cents != credit_cents:
        raise UnbalancedEntry(from_cents(debit_cents), from_cents(credit_cents))


def validate_entry(entry: JournalEntryInput) -> None:
    if entry.entry_type not in ENTRY_TYPES:
        raise InvalidEntry(
            f"Unknown entry type '{entry.entry_type}'.", reason="entry_type", allowed=list(ENTRY_TYPES)
        )
    if not (entry.description or "").strip():
        raise InvalidEntry("Description is required.", reason="description")
    validate_lines(entry.lines)
    ensure_balanced(entry.lines)


def build_invoice_entry(
    *,
    entry_date: date,
    accounts_receivable_id: int,
    revenue_account_id: int,
    amount: Decimal,
    description: str,
    source_id: int | None = None,
) -> JournalEntryInput:
    lines = [
        JournalLineInput(account_id=accounts_receivable_id, debit=amount),
        JournalLineInput(account_id=revenue_account_id, credit=amount),
    ]
    validate_lines(lines)
    ensure_balanced(lines)
    return JournalEntryInput(
        entry_date=entry_date,
        description=description,
        entry_type="invoice",
        reference_type="invoice",
        reference_id=source_id,
        lines=lines,
    )


def build_payment_entry(
    *,
    entry_date: date,
    cash_account_id: int,
    accounts_receivable_id: int,
    amount: Decimal,
    description: str,
    source_id: int | None = None,
) -> JournalEntryInput:
    lines = [
        JournalLineInput(account_id=cash_account_id, debit=amount),
        JournalLineInput(account_id=accounts_receivable_id, credit=amount),
    ]
    validate_lines(lines)
    ensure_balanced(lines)
    return JournalEntryInput(
        entry_date=entry_date,
        description=description,
        entry_type="payment",
        reference_type="payment",
        reference_id=source_id,
        lines=lines,
    )


def build_expense_entry(
    *,
    entry_date: date,
    expense_account_id: int,
    paid_from_account_id: int,
    amount: Decimal,
    description: str,
    source_id: int | None = None,
) -> JournalEntryInput:
    lines = [
        JournalLineInput(account_id=expense_account_id, debit=amount),
        JournalLineInput(account_id=paid_from_account_id, credit=amount),
    ]
    validate_lines(lines)
    ensure_balanced(lines)
    return JournalEntryInput(
        entry_date=entry_date,
        description=description,
        entry_type="expense",
        reference_type="expense",
        reference_id=source_id,
        lines=lines,
    )


def build_offsetting_entry(original, *, entry_date: date, description: str | None = None) -> JournalEntryInput:
    """Adjustment that cancels a posted entry by swapping every line's direction.

    ``original`` is a stored ``JournalEntry``; it is left untouched.
    """
    lines = [
        JournalLineInput(
            account_id=line.account_id,
            debit=Decimal(line.credit or 0),
            credit=Decimal(line.debit or 0),
            description=line.description,
        )
        for line in original.lines
    ]
    ensure_balanced(lines)
    return JournalEntryInput(
        entry_date=entry_date,
        description=description or f"Offset of {original.entry_number}",
        entry_type="adjustment",
        reference_type="journal_entry",
        reference_id=original.id,
        lines=lines,
    )
