from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import object_session, relationship

from .db import Base
from .errors import AppendOnlyViolation

ACCOUNT_TYPES = ("ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE")
DEBIT_NORMAL_TYPES = {"ASSET", "EXPENSE"}
ENTRY_TYPES = ("journal_entry", "invoice", "payment", "expense", "adjustment")


def normal_balance_for(account_type: str) -> str:
    return "debit" if (account_type or "").upper() in DEBIT_NORMAL_TYPES else "credit"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    base_currency = Column(String(10), nullable=False, default="USD")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="company")
    accounts = relationship("Account", back_populates="company")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    company = relationship("Company", back_populates="users")


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    parent_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    opening_balance = Column(Numeric(14, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    is_system_account = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company = relationship("Company", back_populates="accounts")
    parent = relationship("Account", remote_side=[id])

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("ix_accounts_company_type", "company_id", "type"),
    )

    @property
    def normal_balance(self) -> str:
        return normal_balance_for(self.type)


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    entry_number = Column(String(30), nullable=False)
    entry_date = Column(Date, nullable=False)
    entry_type = Column(String(30), nullable=False, default="journal_entry")
    description = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    posted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lines = relationship(
        "JournalLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.id",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "entry_number", name="uq_journal_entry_company_number"),
        Index("ix_journal_entries_company_date", "company_id", "entry_date"),
    )


class JournalLine(Base):
    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    description = Column(String(255), nullable=True)
    debit = Column(Numeric(14, 2), nullable=False, default=0)
    credit = Column(Numeric(14, 2), nullable=False, default=0)

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account")

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_line_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (debit = 0 AND credit > 0)",
            name="ck_journal_line_single_direction",
        ),
        Index("ix_journal_lines_account", "account_id"),
        Index("ix_journal_lines_entry", "journal_entry_id"),
    )


class EntrySequence(Base):
    """Per-tenant counter backing journal entry numbers."""

    __tablename__ = "entry_sequences"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, unique=True)
    current_value = Column(Integer, nullable=False, default=0)


@event.listens_for(JournalEntry, "before_update")
@event.listens_for(JournalLine, "before_update")
def _reject_posted_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise AppendOnlyViolation(
        f"{mapper.class_.__name__} rows are append-only; post an adjustment entry instead.",
        entity=mapper.class_.__name__,
        id=target.id,
    )


@event.listens_for(JournalEntry, "before_delete")
@event.listens_for(JournalLine, "before_delete")
def _reject_posted_delete(mapper, connection, target):
    raise AppendOnlyViolation(
        f"{mapper.class_.__name__} rows cannot be deleted once posted.",
        entity=mapper.class_.__name__,
        id=target.id,
    )
