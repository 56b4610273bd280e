from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from glcore.accounting import schemas as accounting_schemas
from glcore.accounting.service import account_ledger
from glcore.auth import get_company_id, get_current_user
from glcore.chart_of_accounts import schemas
from glcore.chart_of_accounts import service
from glcore.db import get_db
from glcore.errors import LedgerError, http_error
from glcore.models import User

router = APIRouter(prefix="/api/chart-of-accounts", tags=["chart-of-accounts"])


@router.get("", response_model=List[schemas.ChartAccountResponse])
def list_chart_of_accounts(
    type: Optional[schemas.AccountType] = None,
    active_only: bool = False,
    category: Optional[str] = None,
    parent_account_id: Optional[int] = None,
    root_only: bool = False,
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    rows = service.list_accounts(
        db,
        company_id,
        account_type=type,
        active_only=active_only,
        category=category,
        parent_account_id=parent_account_id,
        root_only=root_only,
    )
    return [service.to_account_response(account, count) for account, count in rows]


@router.post("", response_model=schemas.ChartAccountResponse, status_code=status.HTTP_201_CREATED)
def create_chart_account(
    payload: schemas.ChartAccountCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        account = service.create_account(db, current_user.company_id, payload, created_by=current_user.id)
        db.commit()
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return service.to_account_response(service.get_account(db, current_user.company_id, account.id))


@router.get("/{account_id}", response_model=schemas.ChartAccountResponse)
def get_chart_account(account_id: int, company_id: int = Depends(get_company_id), db: Session = Depends(get_db)):
    try:
        account = service.get_account(db, company_id, account_id)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return service.to_account_response(account, service.transaction_count(db, account.id))


@router.put("/{account_id}", response_model=schemas.ChartAccountResponse)
@router.patch("/{account_id}", response_model=schemas.ChartAccountResponse)
def update_chart_account(
    account_id: int,
    payload: schemas.ChartAccountUpdate,
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    try:
        service.update_account(db, company_id, account_id, payload)
        db.commit()
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from exc
    account = service.get_account(db, company_id, account_id)
    return service.to_account_response(account, service.transaction_count(db, account.id))


@router.delete("/{account_id}", response_model=dict)
def delete_chart_account(account_id: int, company_id: int = Depends(get_company_id), db: Session = Depends(get_db)):
    try:
        service.delete_account(db, company_id, account_id)
        db.commit()
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return {"status": "ok"}


@router.get("/{account_id}/balance", response_model=schemas.AccountBalanceResponse)
def get_account_balance(
    account_id: int,
    as_of: Optional[date] = Query(None),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    as_of = as_of or date.today()
    try:
        position = service.current_balance(db, company_id, account_id, as_of=as_of)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return schemas.AccountBalanceResponse(
        account_id=position.account_id,
        account_code=position.account_code,
        account_name=position.account_name,
        account_type=position.account_type,
        normal_balance="debit" if position.is_debit_normal else "credit",
        as_of=as_of,
        balance=position.balance,
    )


@router.get("/{account_id}/summary", response_model=schemas.AccountSummaryResponse)
def get_account_summary(
    account_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    try:
        return service.account_summary(db, company_id, account_id, start_date=start_date, end_date=end_date)
    except LedgerError as exc:
        raise http_error(exc) from exc


@router.get("/{account_id}/ledger", response_model=accounting_schemas.AccountLedgerResponse)
def get_account_ledger(
    account_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    try:
        return account_ledger(db, company_id, account_id, start_date=start_date, end_date=end_date)
    except LedgerError as exc:
        raise http_error(exc) from exc
