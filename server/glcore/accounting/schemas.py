from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)
EntryType = Literal["journal_entry", "invoice", "payment", "expense", "adjustment"]


class JournalLineCreate(BaseModel):
    account_id: int
    debit_amount: DecimalValue = Decimal("0.00")
    credit_amount: DecimalValue = Decimal("0.00")
    description: Optional[str] = Field(None, max_length=255)


class JournalEntryCreate(BaseModel):
    entry_date: date
    entry_type: EntryType = "journal_entry"
    description: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = None
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[int] = None
    lines: list[JournalLineCreate] = Field(..., min_length=1)


class OffsetEntryCreate(BaseModel):
    entry_date: date
    description: Optional[str] = Field(None, max_length=255)


class JournalLineResponse(BaseModel):
    id: int
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str] = None


class JournalEntryResponse(BaseModel):
    id: int
    entry_number: str
    entry_date: date
    entry_type: str
    description: str
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    created_by: Optional[int] = None
    posted_at: datetime
    total_debit: Decimal
    total_credit: Decimal
    lines: list[JournalLineResponse]


class JournalEntryListRow(BaseModel):
    id: int
    entry_number: str
    entry_date: date
    entry_type: str
    description: str
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    created_by: Optional[int] = None
    posted_at: datetime
    line_count: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class AccountLedgerRow(BaseModel):
    entry_id: int
    entry_number: str
    entry_date: date
    entry_type: str
    description: str
    line_description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    balance_after: Decimal


class AccountLedgerResponse(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    opening_balance: Decimal
    closing_balance: Decimal
    transactions: list[AccountLedgerRow]
