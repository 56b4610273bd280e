from datetime import date
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from glcore.balances.service import AccountBalance, account_balance, check_window
from glcore.chart_of_accounts import schemas
from glcore.errors import (
    AccountInUse,
    DuplicateAccountCode,
    ImmutableField,
    InvalidHierarchy,
    NotFound,
    ProtectedAccount,
)
from glcore.models import Account, JournalLine
from glcore.utils import quantize_money


logger = logging.getLogger(__name__)

# Request field -> column. Fixed once the account exists.
IMMUTABLE_FIELDS = {
    "account_code": "code",
    "account_type": "type",
    "opening_balance": "opening_balance",
}
# Fields that change how a system account rolls up or whether it can be posted to.
SYSTEM_ACCOUNT_LOCKED_FIELDS = {
    "parent_account_id": "parent_id",
    "is_active": "is_active",
}


def _normalize_value(field: str, value):
    if value is None:
        return None
    if field == "account_type":
        return value.upper()
    if field == "account_code":
        return value.strip()
    if field == "opening_balance":
        return quantize_money(value)
    return value


def get_account(db: Session, company_id: int, account_id: int) -> Account:
    account = (
        db.query(Account)
        .options(selectinload(Account.parent))
        .filter(Account.id == account_id, Account.company_id == company_id)
        .first()
    )
    if not account:
        raise NotFound("Account", account_id)
    return account


def _transaction_counts(db: Session, account_ids: list[int]) -> dict[int, int]:
    if not account_ids:
        return {}
    rows = (
        db.query(JournalLine.account_id, func.count(JournalLine.id))
        .filter(JournalLine.account_id.in_(account_ids))
        .group_by(JournalLine.account_id)
        .all()
    )
    return {account_id: int(count) for account_id, count in rows}


def transaction_count(db: Session, account_id: int) -> int:
    return _transaction_counts(db, [account_id]).get(account_id, 0)


def list_accounts(
    db: Session,
    company_id: int,
    *,
    account_type: Optional[str] = None,
    active_only: bool = False,
    category: Optional[str] = None,
    parent_account_id: Optional[int] = None,
    root_only: bool = False,
) -> list[tuple[Account, int]]:
    query = db.query(Account).options(selectinload(Account.parent)).filter(Account.company_id == company_id)
    if account_type:
        query = query.filter(Account.type == account_type.upper())
    if active_only:
        query = query.filter(Account.is_active.is_(True))
    if category:
        query = query.filter(Account.category == category)
    if root_only:
        query = query.filter(Account.parent_id.is_(None))
    elif parent_account_id is not None:
        query = query.filter(Account.parent_id == parent_account_id)

    accounts = query.order_by(Account.type.asc(), Account.code.asc(), Account.id.asc()).all()
    counts = _transaction_counts(db, [account.id for account in accounts])
    return [(account, counts.get(account.id, 0)) for account in accounts]


def _validate_parent(
    db: Session,
    company_id: int,
    *,
    account_type: str,
    parent_id: int,
    account_id: Optional[int] = None,
) -> Account:
    parent = db.query(Account).filter(Account.id == parent_id, Account.company_id == company_id).first()
    if not parent:
        raise InvalidHierarchy(
            "Parent account not found.",
            account_id=account_id,
            parent_account_id=parent_id,
            reason="parent_not_found",
        )
    if parent.type != account_type:
        raise InvalidHierarchy(
            f"Parent account type {parent.type} does not match account type {account_type}.",
            account_id=account_id,
            parent_account_id=parent_id,
            reason="type_mismatch",
        )

    if account_id is None:
        return parent

    # Walk the ancestors of the proposed parent; meeting the account itself means a cycle.
    seen: set[int] = set()
    node: Optional[Account] = parent
    while node is not None and node.id not in seen:
        if node.id == account_id:
            raise InvalidHierarchy(
                "An account cannot be its own ancestor.",
                account_id=account_id,
                parent_account_id=parent_id,
                reason="cycle",
            )
        seen.add(node.id)
        if node.parent_id is None:
            break
        node = db.query(Account).filter(Account.id == node.parent_id, Account.company_id == company_id).first()
    return parent


def create_account(
    db: Session,
    company_id: int,
    payload: schemas.ChartAccountCreate,
    *,
    created_by: Optional[int] = None,
    is_system_account: bool = False,
) -> Account:
    code = payload.account_code.strip()
    account_type = payload.account_type.upper()

    exists = db.query(Account.id).filter(Account.company_id == company_id, Account.code == code).first()
    if exists:
        raise DuplicateAccountCode(code)

    if payload.parent_account_id is not None:
        _validate_parent(db, company_id, account_type=account_type, parent_id=payload.parent_account_id)

    account = Account(
        company_id=company_id,
        code=code,
        name=payload.account_name.strip(),
        type=account_type,
        category=payload.account_category,
        description=payload.description,
        parent_id=payload.parent_account_id,
        opening_balance=quantize_money(payload.opening_balance or 0),
        is_active=payload.is_active,
        is_system_account=is_system_account,
        created_by=created_by,
    )
    db.add(account)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateAccountCode(code) from None

    logger.info("Created account company_id=%s id=%s code=%s type=%s", company_id, account.id, code, account_type)
    return account


def update_account(db: Session, company_id: int, account_id: int, payload: schemas.ChartAccountUpdate) -> Account:
    account = get_account(db, company_id, account_id)
    data = payload.model_dump(exclude_unset=True)

    for field, column in IMMUTABLE_FIELDS.items():
        if field not in data:
            continue
        current = getattr(account, column)
        if field == "opening_balance":
            current = quantize_money(current or 0)
        if _normalize_value(field, data[field]) != current:
            raise ImmutableField(field)

    if account.is_system_account:
        for field, column in SYSTEM_ACCOUNT_LOCKED_FIELDS.items():
            if field in data and data[field] != getattr(account, column):
                raise ProtectedAccount(
                    f"System account {account.code} cannot change '{field}'.",
                    account_id=account.id,
                    field=field,
                )

    if "parent_account_id" in data:
        parent_id = data["parent_account_id"]
        if parent_id is not None:
            if parent_id == account.id:
                raise InvalidHierarchy(
                    "An account cannot be its own parent.",
                    account_id=account.id,
                    parent_account_id=parent_id,
                    reason="self_parent",
                )
            _validate_parent(db, company_id, account_type=account.type, parent_id=parent_id, account_id=account.id)
        account.parent_id = parent_id

    if data.get("account_name") is not None:
        account.name = data["account_name"].strip()
    if "account_category" in data:
        account.category = data["account_category"]
    if "description" in data:
        account.description = data["description"]
    if data.get("is_active") is not None:
        account.is_active = data["is_active"]

    db.flush()
    db.refresh(account)
    logger.info("Updated account company_id=%s id=%s fields=%s", company_id, account.id, sorted(data))
    return account


def delete_account(db: Session, company_id: int, account_id: int) -> None:
    account = get_account(db, company_id, account_id)
    if account.is_system_account:
        raise ProtectedAccount(f"System account {account.code} cannot be deleted.", account_id=account.id)

    line_count = transaction_count(db, account.id)
    child_count = (
        db.query(func.count(Account.id))
        .filter(Account.parent_id == account.id, Account.company_id == company_id)
        .scalar()
    )
    if line_count or child_count:
        raise AccountInUse(
            "Cannot delete an account with posted lines or child accounts. Deactivate it instead.",
            account_id=account.id,
            line_count=line_count,
            child_count=int(child_count or 0),
        )

    db.delete(account)
    db.flush()
    logger.info("Deleted account company_id=%s id=%s code=%s", company_id, account_id, account.code)


def current_balance(db: Session, company_id: int, account_id: int, as_of: Optional[date] = None) -> AccountBalance:
    """Opening balance plus every line dated on or before ``as_of`` (default today), in the account's normal sign."""
    return account_balance(db, company_id, account_id, end_date=as_of or date.today())


def to_account_response(account: Account, transaction_count: int = 0) -> schemas.ChartAccountResponse:
    parent_summary = None
    if account.parent:
        parent_summary = schemas.AccountParentSummary(
            id=account.parent.id,
            account_code=account.parent.code,
            account_name=account.parent.name,
        )
    return schemas.ChartAccountResponse(
        id=account.id,
        account_code=account.code,
        account_name=account.name,
        account_type=account.type,
        account_category=account.category,
        description=account.description,
        normal_balance=account.normal_balance,
        parent_account_id=account.parent_id,
        parent_account=parent_summary,
        opening_balance=quantize_money(account.opening_balance or 0),
        is_active=account.is_active,
        is_system_account=account.is_system_account,
        transaction_count=transaction_count,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def account_summary(
    db: Session,
    company_id: int,
    account_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> schemas.AccountSummaryResponse:
    if start_date is not None and end_date is not None:
        check_window(start_date, end_date)
    account = get_account(db, company_id, account_id)
    position = current_balance(db, company_id, account_id, as_of=end_date)
    window = position
    if start_date is not None:
        window = account_balance(db, company_id, account_id, start_date=start_date, end_date=end_date)

    return schemas.AccountSummaryResponse(
        account=to_account_response(account, transaction_count(db, account.id)),
        start_date=start_date,
        end_date=end_date,
        summary=schemas.AccountSummaryTotals(
            opening_balance=quantize_money(account.opening_balance or 0),
            current_balance=position.balance,
            total_debits=window.total_debit,
            total_credits=window.total_credit,
            line_count=window.line_count,
        ),
    )
