"""Balance aggregation over the journal.

Balances are never stored: every figure here is derived from ``journal_lines``
at call time with one grouped query per call (grouped by account, scoped by
tenant and date window), then combined with the account rows in Python.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from glcore.errors import InvalidQuery, NotFound
from glcore.models import ACCOUNT_TYPES, DEBIT_NORMAL_TYPES, Account, JournalEntry, JournalLine
from glcore.sql_expressions import QueryDeadline, bounded_query
from glcore.utils import ZERO, quantize_money


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineTotals:
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    line_count: int = 0


@dataclass(frozen=True)
class AccountBalance:
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    account_category: Optional[str]
    parent_account_id: Optional[int]
    is_active: bool
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    line_count: int
    balance: Decimal

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in DEBIT_NORMAL_TYPES


def compute_account_balance(account_type: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Debit-normal types increase on debit, the rest on credit."""
    if (account_type or "").upper() in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def _validate_type(account_type: Optional[str]) -> Optional[str]:
    if account_type is None:
        return None
    normalized = account_type.upper()
    if normalized not in ACCOUNT_TYPES:
        raise InvalidQuery(
            f"Unknown account type '{account_type}'.", reason="account_type", allowed=list(ACCOUNT_TYPES)
        )
    return normalized


def check_window(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise InvalidQuery(
            "start_date must be on or before end_date.",
            reason="inverted_window",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )


def line_totals_by_account(
    db: Session,
    company_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    account_ids: Optional[Iterable[int]] = None,
    account_type: Optional[str] = None,
    deadline: Optional[QueryDeadline] = None,
) -> Dict[int, LineTotals]:
    query = (
        db.query(
            JournalLine.account_id,
            func.coalesce(func.sum(JournalLine.debit), 0),
            func.coalesce(func.sum(JournalLine.credit), 0),
            func.count(JournalLine.id),
        )
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(JournalEntry.company_id == company_id)
    )
    if account_type is not None:
        query = query.join(Account, Account.id == JournalLine.account_id).filter(
            Account.company_id == company_id,
            Account.type == account_type,
        )
    if account_ids is not None:
        query = query.filter(JournalLine.account_id.in_(list(account_ids)))
    if start_date is not None:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date is not None:
        query = query.filter(JournalEntry.entry_date <= end_date)

    with bounded_query(db, deadline):
        rows = query.group_by(JournalLine.account_id).all()

    return {
        account_id: LineTotals(
            debit=quantize_money(debit or 0),
            credit=quantize_money(credit or 0),
            line_count=int(count or 0),
        )
        for account_id, debit, credit, count in rows
    }


def account_balances(
    db: Session,
    company_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    account_type: Optional[str] = None,
    active_only: bool = False,
    account_ids: Optional[Iterable[int]] = None,
    deadline: Optional[QueryDeadline] = None,
) -> List[AccountBalance]:
    """Balance of every matching account over ``[start_date, end_date]``.

    Opening balances count only when the window is open at the start, so a
    bounded window yields the period movement rather than a position.
    Rows come back ordered by account code then id.
    """
    account_type = _validate_type(account_type)
    accounts_query = db.query(Account).filter(Account.company_id == company_id)
    if account_type is not None:
        accounts_query = accounts_query.filter(Account.type == account_type)
    if active_only:
        accounts_query = accounts_query.filter(Account.is_active.is_(True))
    if account_ids is not None:
        account_ids = list(account_ids)
        accounts_query = accounts_query.filter(Account.id.in_(account_ids))

    with bounded_query(db, deadline):
        accounts = accounts_query.order_by(Account.code.asc(), Account.id.asc()).all()
    if not accounts:
        return []

    totals = line_totals_by_account(
        db,
        company_id,
        start_date=start_date,
        end_date=end_date,
        account_ids=account_ids,
        account_type=account_type,
        deadline=deadline,
    )
    include_opening = start_date is None

    balances: List[AccountBalance] = []
    for account in accounts:
        line_totals = totals.get(account.id, LineTotals())
        opening = quantize_money(account.opening_balance or 0) if include_opening else ZERO
        movement = compute_account_balance(account.type, line_totals.debit, line_totals.credit)
        balances.append(
            AccountBalance(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.type,
                account_category=account.category,
                parent_account_id=account.parent_id,
                is_active=bool(account.is_active),
                opening_balance=opening,
                total_debit=line_totals.debit,
                total_credit=line_totals.credit,
                line_count=line_totals.line_count,
                balance=quantize_money(opening + movement),
            )
        )
    logger.debug(
        "Aggregated balances company_id=%s type=%s window=%s..%s accounts=%s",
        company_id,
        account_type,
        start_date,
        end_date,
        len(balances),
    )
    return balances


def account_balance(
    db: Session,
    company_id: int,
    account_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> AccountBalance:
    rows = account_balances(db, company_id, start_date=start_date, end_date=end_date, account_ids=[account_id])
    if not rows:
        raise NotFound("Account", account_id)
    return rows[0]


def type_totals(
    db: Session,
    company_id: int,
    account_type: str,
    *,
    as_of: Optional[date] = None,
    deadline: Optional[QueryDeadline] = None,
) -> Decimal:
    """Point-in-time position of every active account of one type."""
    rows = account_balances(
        db,
        company_id,
        end_date=as_of,
        account_type=account_type,
        active_only=True,
        deadline=deadline,
    )
    return quantize_money(sum((row.balance for row in rows), ZERO))


def period_totals(
    db: Session,
    company_id: int,
    account_type: str,
    *,
    start_date: date,
    end_date: date,
    deadline: Optional[QueryDeadline] = None,
) -> Decimal:
    """Net flow for one account type over entries dated inside the window."""
    check_window(start_date, end_date)
    rows = account_balances(
        db,
        company_id,
        start_date=start_date,
        end_date=end_date,
        account_type=account_type,
        deadline=deadline,
    )
    return quantize_money(sum((row.balance for row in rows), ZERO))
