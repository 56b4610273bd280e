"""Pydantic schemas for financial report responses."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class IntegrityIssue(BaseModel):
    check: str
    message: str
    expected: Decimal
    actual: Decimal
    difference: Decimal


class ReportAccountRow(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_category: Optional[str] = None
    balance: Decimal


# ---------------------------------------------------------------------------
# Trial balance
# ---------------------------------------------------------------------------


class TrialBalanceRow(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal


class TrialBalanceResponse(BaseModel):
    as_of: date
    rows: List[TrialBalanceRow] = []
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool
    integrity_errors: List[IntegrityIssue] = []


# ---------------------------------------------------------------------------
# Income statement
# ---------------------------------------------------------------------------


class CategoryTotal(BaseModel):
    category: str
    total: Decimal


class IncomeStatementResponse(BaseModel):
    start_date: date
    end_date: date
    income: List[ReportAccountRow] = []
    expenses: List[ReportAccountRow] = []
    expenses_by_category: List[CategoryTotal] = []
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------


class BalanceSheetResponse(BaseModel):
    as_of: date
    assets: List[ReportAccountRow] = []
    liabilities: List[ReportAccountRow] = []
    equity: List[ReportAccountRow] = []
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    unclosed_earnings: Decimal
    is_balanced: bool
    integrity_errors: List[IntegrityIssue] = []


# ---------------------------------------------------------------------------
# Cash flow
# ---------------------------------------------------------------------------

Activity = Literal["operating", "investing", "financing"]


class ClassificationRule(BaseModel):
    entry_type: Optional[str] = None
    reference_type: Optional[str] = None
    activity: Activity

    @model_validator(mode="after")
    def _needs_a_match_key(self) -> ClassificationRule:
        if self.entry_type is None and self.reference_type is None:
            raise ValueError("A classification rule needs an entry_type or a reference_type.")
        return self

    @property
    def specificity(self) -> int:
        # entry_type outranks reference_type when only one is given.
        return (2 if self.entry_type is not None else 0) + (1 if self.reference_type is not None else 0)


class CashFlowClassification(BaseModel):
    version: str = "default"
    cash_categories: List[str] = Field(default_factory=lambda: ["Cash", "Bank"])
    cash_account_ids: List[int] = []
    rules: List[ClassificationRule] = []


class CashFlowItem(BaseModel):
    entry_type: str
    reference_type: Optional[str] = None
    entry_count: int
    amount: Decimal


class CashFlowResponse(BaseModel):
    start_date: date
    end_date: date
    classification_version: str
    operating_activities: List[CashFlowItem] = []
    investing_activities: List[CashFlowItem] = []
    financing_activities: List[CashFlowItem] = []
    unclassified_activities: List[CashFlowItem] = []
    net_operating: Decimal
    net_investing: Decimal
    net_financing: Decimal
    net_unclassified: Decimal
    net_change_in_cash: Decimal

