from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


AccountType = Literal["ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE"]
DecimalValue = condecimal(max_digits=14, decimal_places=2)


class AccountParentSummary(BaseModel):
    id: int
    account_code: str
    account_name: str


class ChartAccountCreate(BaseModel):
    account_code: str = Field(..., min_length=1, max_length=50)
    account_name: str = Field(..., min_length=1, max_length=200)
    account_type: AccountType
    account_category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    parent_account_id: Optional[int] = None
    opening_balance: DecimalValue = Decimal("0.00")
    is_active: bool = True


class ChartAccountUpdate(BaseModel):
    """Partial update. Immutable fields are accepted here so the service can reject them explicitly."""

    account_name: Optional[str] = Field(None, min_length=1, max_length=200)
    account_category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    parent_account_id: Optional[int] = None
    is_active: Optional[bool] = None
    account_code: Optional[str] = Field(None, max_length=50)
    account_type: Optional[AccountType] = None
    opening_balance: Optional[DecimalValue] = None


class ChartAccountResponse(BaseModel):
    id: int
    account_code: str
    account_name: str
    account_type: str
    account_category: Optional[str] = None
    description: Optional[str] = None
    normal_balance: str
    parent_account_id: Optional[int] = None
    parent_account: Optional[AccountParentSummary] = None
    opening_balance: Decimal
    is_active: bool
    is_system_account: bool
    transaction_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountBalanceResponse(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    as_of: date
    balance: Decimal


class AccountSummaryTotals(BaseModel):
    opening_balance: Decimal
    current_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    line_count: int


class AccountSummaryResponse(BaseModel):
    account: ChartAccountResponse
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    summary: AccountSummaryTotals
