from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from glcore.accounting import schemas
from glcore.accounting.posting import JournalEntryInput, build_offsetting_entry, validate_entry
from glcore.accounting.sequence import allocate_entry_number
from glcore.balances.service import account_balance, check_window, compute_account_balance
from glcore.errors import InvalidEntry, NotFound
from glcore.models import ENTRY_TYPES, Account, JournalEntry, JournalLine
from glcore.utils import ZERO, quantize_money


logger = logging.getLogger(__name__)


def _resolve_posting_accounts(db: Session, company_id: int, account_ids: set[int]) -> dict[int, Account]:
    accounts = (
        db.query(Account)
        .filter(Account.company_id == company_id, Account.id.in_(account_ids))
        .all()
    )
    by_id = {account.id: account for account in accounts}

    missing = sorted(account_ids - by_id.keys())
    if missing:
        raise InvalidEntry(
            f"Accounts not found: {', '.join(str(account_id) for account_id in missing)}.",
            reason="unknown_account",
            account_ids=missing,
        )
    inactive = sorted(account.id for account in accounts if not account.is_active)
    if inactive:
        raise InvalidEntry(
            f"Cannot post to inactive accounts: {', '.join(str(account_id) for account_id in inactive)}.",
            reason="inactive_account",
            account_ids=inactive,
        )
    return by_id


def post_entry(db: Session, company_id: int, entry: JournalEntryInput) -> JournalEntry:
    """Validate and persist one balanced entry with its lines.

    Every check runs before the first write, so a rejected entry leaves no
    rows behind. The entry number, header and lines are flushed in the
    caller's transaction; the caller commits.
    """
    validate_entry(entry)
    _resolve_posting_accounts(db, company_id, {line.account_id for line in entry.lines})

    posted_at = datetime.utcnow()
    journal_entry = JournalEntry(
        company_id=company_id,
        entry_number=allocate_entry_number(db, company_id, posted_at),
        entry_date=entry.entry_date,
        entry_type=entry.entry_type,
        description=entry.description.strip(),
        notes=entry.notes,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
        created_by=entry.created_by,
        posted_at=posted_at,
    )
    journal_entry.lines = [
        JournalLine(
            account_id=line.account_id,
            debit=quantize_money(line.debit or 0),
            credit=quantize_money(line.credit or 0),
            description=line.description,
        )
        for line in entry.lines
    ]
    db.add(journal_entry)
    db.flush()

    total = sum((Decimal(line.debit) for line in journal_entry.lines), ZERO)
    logger.info(
        "Posted journal entry company_id=%s number=%s type=%s lines=%s total=%s",
        company_id,
        journal_entry.entry_number,
        journal_entry.entry_type,
        len(journal_entry.lines),
        total,
    )
    return get_entry(db, company_id, journal_entry.id)


def post_offsetting_entry(
    db: Session,
    company_id: int,
    entry_id: int,
    *,
    entry_date: date,
    description: Optional[str] = None,
    created_by: Optional[int] = None,
) -> JournalEntry:
    original = get_entry(db, company_id, entry_id)
    offset = build_offsetting_entry(original, entry_date=entry_date, description=description)
    return post_entry(db, company_id, replace(offset, created_by=created_by))


def get_entry(db: Session, company_id: int, entry_id: int) -> JournalEntry:
    entry = (
        db.query(JournalEntry)
        .options(selectinload(JournalEntry.lines).selectinload(JournalLine.account))
        .filter(JournalEntry.id == entry_id, JournalEntry.company_id == company_id)
        .first()
    )
    if not entry:
        raise NotFound("Journal entry", entry_id)
    return entry


def list_entries(
    db: Session,
    company_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    entry_type: Optional[str] = None,
    account_id: Optional[int] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[dict]:
    if entry_type is not None and entry_type not in ENTRY_TYPES:
        raise InvalidEntry(f"Unknown entry type '{entry_type}'.", reason="entry_type", allowed=list(ENTRY_TYPES))

    query = (
        db.query(
            JournalEntry,
            func.count(JournalLine.id).label("line_count"),
            func.coalesce(func.sum(JournalLine.debit), 0).label("total_amount"),
        )
        .outerjoin(JournalLine, JournalLine.journal_entry_id == JournalEntry.id)
        .filter(JournalEntry.company_id == company_id)
    )
    if start_date is not None:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date is not None:
        query = query.filter(JournalEntry.entry_date <= end_date)
    if entry_type is not None:
        query = query.filter(JournalEntry.entry_type == entry_type)
    if account_id is not None:
        query = query.filter(
            JournalEntry.id.in_(select(JournalLine.journal_entry_id).where(JournalLine.account_id == account_id))
        )

    query = query.group_by(JournalEntry.id).order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc())
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)

    return [
        {
            "id": entry.id,
            "entry_number": entry.entry_number,
            "entry_date": entry.entry_date,
            "entry_type": entry.entry_type,
            "description": entry.description,
            "reference_type": entry.reference_type,
            "reference_id": entry.reference_id,
            "created_by": entry.created_by,
            "posted_at": entry.posted_at,
            "line_count": int(line_count or 0),
            "total_amount": quantize_money(total_amount or 0),
        }
        for entry, line_count, total_amount in query.all()
    ]


def to_entry_response(entry: JournalEntry) -> schemas.JournalEntryResponse:
    lines = [
        schemas.JournalLineResponse(
            id=line.id,
            account_id=line.account_id,
            account_code=line.account.code,
            account_name=line.account.name,
            account_type=line.account.type,
            debit_amount=quantize_money(line.debit or 0),
            credit_amount=quantize_money(line.credit or 0),
            description=line.description,
        )
        for line in entry.lines
    ]
    return schemas.JournalEntryResponse(
        id=entry.id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        entry_type=entry.entry_type,
        description=entry.description,
        notes=entry.notes,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
        created_by=entry.created_by,
        posted_at=entry.posted_at,
        total_debit=sum((line.debit_amount for line in lines), ZERO),
        total_credit=sum((line.credit_amount for line in lines), ZERO),
        lines=lines,
    )


def account_ledger(
    db: Session,
    company_id: int,
    account_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> schemas.AccountLedgerResponse:
    """Lines posted to one account in date order, each with the running balance after it."""
    if start_date is not None and end_date is not None:
        check_window(start_date, end_date)
    account = db.query(Account).filter(Account.id == account_id, Account.company_id == company_id).first()
    if not account:
        raise NotFound("Account", account_id)

    if start_date is None:
        opening = quantize_money(account.opening_balance or 0)
    else:
        opening = account_balance(
            db, company_id, account_id, end_date=start_date - timedelta(days=1)
        ).balance

    query = (
        db.query(JournalLine, JournalEntry)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(JournalLine.account_id == account_id, JournalEntry.company_id == company_id)
    )
    if start_date is not None:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date is not None:
        query = query.filter(JournalEntry.entry_date <= end_date)
    rows = query.order_by(JournalEntry.entry_date.asc(), JournalEntry.id.asc(), JournalLine.id.asc()).all()

    running = opening
    transactions: list[schemas.AccountLedgerRow] = []
    for line, entry in rows:
        debit = quantize_money(line.debit or 0)
        credit = quantize_money(line.credit or 0)
        running = running + compute_account_balance(account.type, debit, credit)
        transactions.append(
            schemas.AccountLedgerRow(
                entry_id=entry.id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                entry_type=entry.entry_type,
                description=entry.description,
                line_description=line.description,
                debit_amount=debit,
                credit_amount=credit,
                balance_after=running,
            )
        )

    return schemas.AccountLedgerResponse(
        account_id=account.id,
        account_code=account.code,
        account_name=account.name,
        account_type=account.type,
        start_date=start_date,
        end_date=end_date,
        opening_balance=opening,
        closing_balance=running,
        transactions=transactions,
    )
