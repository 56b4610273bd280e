from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from glcore.accounting import schemas
from glcore.accounting.posting import JournalEntryInput, JournalLineInput
from glcore.accounting.service import get_entry, list_entries, post_entry, post_offsetting_entry, to_entry_response
from glcore.auth import get_company_id, get_current_user
from glcore.db import get_db
from glcore.errors import LedgerError, http_error
from glcore.models import User

router = APIRouter(prefix="/api/journal-entries", tags=["journal-entries"])


def _to_input(payload: schemas.JournalEntryCreate, created_by: Optional[int]) -> JournalEntryInput:
    return JournalEntryInput(
        entry_date=payload.entry_date,
        entry_type=payload.entry_type,
        description=payload.description,
        notes=payload.notes,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
        created_by=created_by,
        lines=[
            JournalLineInput(
                account_id=line.account_id,
                debit=line.debit_amount,
                credit=line.credit_amount,
                description=line.description,
            )
            for line in payload.lines
        ],
    )


@router.post("", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def create_journal_entry_endpoint(
    payload: schemas.JournalEntryCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        entry = post_entry(db, current_user.company_id, _to_input(payload, current_user.id))
        db.commit()
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return to_entry_response(entry)


@router.get("", response_model=list[schemas.JournalEntryListRow])
def list_journal_entries(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    entry_type: Optional[schemas.EntryType] = Query(None),
    account_id: Optional[int] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    company_id: int = Depends(get_company_id),
    db: Session = Depends(get_db),
):
    try:
        rows = list_entries(
            db,
            company_id,
            start_date=start_date,
            end_date=end_date,
            entry_type=entry_type,
            account_id=account_id,
            limit=limit,
            offset=offset,
        )
    except LedgerError as exc:
        raise http_error(exc) from exc
    return [schemas.JournalEntryListRow(**row) for row in rows]


@router.get("/{entry_id}", response_model=schemas.JournalEntryResponse)
def get_journal_entry(entry_id: int, company_id: int = Depends(get_company_id), db: Session = Depends(get_db)):
    try:
        entry = get_entry(db, company_id, entry_id)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return to_entry_response(entry)


@router.post("/{entry_id}/offset", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def offset_journal_entry(
    entry_id: int,
    payload: schemas.OffsetEntryCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        entry = post_offsetting_entry(
            db,
            current_user.company_id,
            entry_id,
            entry_date=payload.entry_date,
            description=payload.description,
            created_by=current_user.id,
        )
        db.commit()
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from exc
    return to_entry_response(entry)
