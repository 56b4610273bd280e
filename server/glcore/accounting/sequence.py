from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from glcore.models import EntrySequence


logger = logging.getLogger(__name__)

ENTRY_NUMBER_PREFIX = "JE"


def _insert_ignoring_conflict(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert(EntrySequence).on_conflict_do_nothing(index_elements=["company_id"])
    if dialect_name == "sqlite":
        return sqlite.insert(EntrySequence).on_conflict_do_nothing(index_elements=["company_id"])
    return None


def _ensure_counter(db: Session, company_id: int) -> None:
    statement = _insert_ignoring_conflict(db.get_bind().dialect.name)
    if statement is not None:
        db.execute(statement.values(company_id=company_id, current_value=0))
        return

    # Dialects without an upsert construct race on first use; the unique
    # constraint on company_id turns the loser into a plain re-read.
    exists = db.execute(select(EntrySequence.id).where(EntrySequence.company_id == company_id)).first()
    if exists:
        return
    savepoint = db.begin_nested()
    try:
        db.add(EntrySequence(company_id=company_id, current_value=0))
        db.flush()
        savepoint.commit()
    except IntegrityError:
        savepoint.rollback()


def next_sequence_value(db: Session, company_id: int) -> int:
    """Increment the tenant's counter row under a row lock.

    The increment only becomes visible when the caller's transaction commits,
    so a rolled-back posting does not consume a number.
    """
    _ensure_counter(db, company_id)
    counter = db.execute(
        select(EntrySequence)
        .where(EntrySequence.company_id == company_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()
    counter.current_value += 1
    db.flush()
    logger.debug("Allocated entry sequence company_id=%s value=%s", company_id, counter.current_value)
    return counter.current_value


def format_entry_number(sequence_value: int, posted_at: datetime | None = None) -> str:
    year = (posted_at or datetime.utcnow()).year
    return f"{ENTRY_NUMBER_PREFIX}-{year}-{sequence_value:05d}"


def allocate_entry_number(db: Session, company_id: int, posted_at: datetime | None = None) -> str:
    return format_entry_number(next_sequence_value(db, company_id), posted_at)
