from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from glcore.auth import get_company_id
from glcore.db import get_db
from glcore.errors import LedgerError, http_error
from glcore.reports import schemas, service

router = APIRouter(prefix="/api/reports", tags=["reports"])


def _run(report, db: Session, **kwargs):
    try:
        return report(db, **kwargs)
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.get("/trial-balance", response_model=schemas.TrialBalanceResponse)
def get_trial_balance(
    as_of: Optional[date] = Query(None),
    strict: bool = False,
    timeout_seconds: Optional[Decimal] = Query(None, ge=0),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    return _run(
        service.trial_balance, db, company_id=company_id, as_of=as_of, strict=strict, timeout_seconds=timeout_seconds
    )


@router.get("/income-statement", response_model=schemas.IncomeStatementResponse)
def get_income_statement(
    start_date: date = Query(...),
    end_date: date = Query(...),
    timeout_seconds: Optional[Decimal] = Query(None, ge=0),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    return _run(
        service.income_statement,
        db,
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
        timeout_seconds=timeout_seconds,
    )


@router.get("/balance-sheet", response_model=schemas.BalanceSheetResponse)
def get_balance_sheet(
    as_of: Optional[date] = Query(None),
    strict: bool = False,
    timeout_seconds: Optional[Decimal] = Query(None, ge=0),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    return _run(
        service.balance_sheet, db, company_id=company_id, as_of=as_of, strict=strict, timeout_seconds=timeout_seconds
    )


@router.get("/cash-flow", response_model=schemas.CashFlowResponse)
def get_cash_flow(
    start_date: date = Query(...),
    end_date: date = Query(...),
    timeout_seconds: Optional[Decimal] = Query(None, ge=0),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    return _run(
        service.cash_flow,
        db,
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
        timeout_seconds=timeout_seconds,
    )


@router.post("/cash-flow", response_model=schemas.CashFlowResponse)
def post_cash_flow(
    classification: schemas.CashFlowClassification = Body(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    timeout_seconds: Optional[Decimal] = Query(None, ge=0),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    return _run(
        service.cash_flow,
        db,
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
        classification=classification,
        timeout_seconds=timeout_seconds,
    )
