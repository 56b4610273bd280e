"""Financial statements derived from the journal.

Each report is a pure function of tenant, date window and ledger state. Rows
are ordered by account code then id so two runs over the same ledger produce
identical output. Integrity violations are attached to the report and logged;
``strict=True`` raises them instead.
"""
from collections import defaultdict
from datetime import date
from decimal import Decimal
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from glcore import config
from glcore.balances.service import AccountBalance, account_balances, check_window
from glcore.errors import LedgerIntegrityError
from glcore.reports import schemas
from glcore.reports.cash_flow import cash_movements, classify, load_classification
from glcore.sql_expressions import QueryDeadline
from glcore.utils import ZERO, quantize_money, to_cents


logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


def make_deadline(label: str, timeout_seconds=None) -> QueryDeadline:
    if timeout_seconds is None:
        timeout_seconds = config.REPORT_QUERY_TIMEOUT_SECONDS
    return QueryDeadline(timeout_seconds, label=label)


def _surface(exc: LedgerIntegrityError, issues: list, *, company_id: int, strict: bool) -> None:
    logger.warning("Ledger integrity violation company_id=%s check=%s: %s", company_id, exc.check, exc.message)
    if strict:
        raise exc
    issues.append(
        schemas.IntegrityIssue(
            check=exc.check,
            message=exc.message,
            expected=exc.details["expected"],
            actual=exc.details["actual"],
            difference=exc.details["difference"],
        )
    )


def _has_activity(row: AccountBalance) -> bool:
    return row.balance != ZERO or row.line_count > 0


def _report_rows(balances: Iterable[AccountBalance]) -> List[schemas.ReportAccountRow]:
    return [
        schemas.ReportAccountRow(
            account_id=row.account_id,
            account_code=row.account_code,
            account_name=row.account_name,
            account_category=row.account_category,
            balance=row.balance,
        )
        for row in balances
        if _has_activity(row)
    ]


def _total(rows: Iterable[AccountBalance]) -> Decimal:
    return quantize_money(sum((row.balance for row in rows), ZERO))


def trial_balance(
    db: Session,
    company_id: int,
    *,
    as_of: Optional[date] = None,
    strict: bool = False,
    timeout_seconds=None,
    deadline: Optional[QueryDeadline] = None,
) -> schemas.TrialBalanceResponse:
    as_of = as_of or date.today()
    deadline = deadline or make_deadline("trial_balance", timeout_seconds)
    balances = account_balances(db, company_id, end_date=as_of, deadline=deadline)

    rows: List[schemas.TrialBalanceRow] = []
    total_debit = ZERO
    total_credit = ZERO
    for row in balances:
        if row.balance == ZERO:
            continue
        # A balance against the account's normal side goes in the opposite column.
        on_debit_side = row.is_debit_normal == (row.balance > ZERO)
        amount = abs(row.balance)
        debit = amount if on_debit_side else ZERO
        credit = ZERO if on_debit_side else amount
        total_debit += debit
        total_credit += credit
        rows.append(
            schemas.TrialBalanceRow(
                account_id=row.account_id,
                account_code=row.account_code,
                account_name=row.account_name,
                account_type=row.account_type,
                debit=debit,
                credit=credit,
            )
        )

    total_debit = quantize_money(total_debit)
    total_credit = quantize_money(total_credit)
    is_balanced = to_cents(total_debit) == to_cents(total_credit)
    issues: List[schemas.IntegrityIssue] = []
    if not is_balanced:
        _surface(
            LedgerIntegrityError(
                "trial_balance_columns",
                f"Trial balance debit column {total_debit} does not equal credit column {total_credit}.",
                expected=total_debit,
                actual=total_credit,
            ),
            issues,
            company_id=company_id,
            strict=strict,
        )

    return schemas.TrialBalanceResponse(
        as_of=as_of,
        rows=rows,
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=is_balanced,
        integrity_errors=issues,
    )


def income_statement(
    db: Session,
    company_id: int,
    *,
    start_date: date,
    end_date: date,
    timeout_seconds=None,
    deadline: Optional[QueryDeadline] = None,
) -> schemas.IncomeStatementResponse:
    check_window(start_date, end_date)
    deadline = deadline or make_deadline("income_statement", timeout_seconds)

    revenue = account_balances(
        db, company_id, start_date=start_date, end_date=end_date, account_type="REVENUE", deadline=deadline
    )
    expenses = account_balances(
        db, company_id, start_date=start_date, end_date=end_date, account_type="EXPENSE", deadline=deadline
    )

    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for row in expenses:
        if _has_activity(row):
            by_category[row.account_category or UNCATEGORIZED] += row.balance

    total_income = _total(revenue)
    total_expenses = _total(expenses)
    return schemas.IncomeStatementResponse(
        start_date=start_date,
        end_date=end_date,
        income=_report_rows(revenue),
        expenses=_report_rows(expenses),
        expenses_by_category=[
            schemas.CategoryTotal(category=category, total=quantize_money(total))
            for category, total in sorted(by_category.items())
        ],
        total_income=total_income,
        total_expenses=total_expenses,
        net_income=quantize_money(total_income - total_expenses),
    )


def balance_sheet(
    db: Session,
    company_id: int,
    *,
    as_of: Optional[date] = None,
    strict: bool = False,
    timeout_seconds=None,
    deadline: Optional[QueryDeadline] = None,
) -> schemas.BalanceSheetResponse:
    """Point-in-time position of active accounts, entries dated on or before ``as_of`` (default today) included."""
    as_of = as_of or date.today()
    deadline = deadline or make_deadline("balance_sheet", timeout_seconds)
    balances = account_balances(db, company_id, end_date=as_of, active_only=True, deadline=deadline)

    by_type: dict[str, List[AccountBalance]] = defaultdict(list)
    for row in balances:
        by_type[row.account_type].append(row)

    total_assets = _total(by_type["ASSET"])
    total_liabilities = _total(by_type["LIABILITY"])
    total_equity = _total(by_type["EQUITY"])
    unclosed_earnings = quantize_money(_total(by_type["REVENUE"]) - _total(by_type["EXPENSE"]))

    liabilities_and_equity = quantize_money(total_liabilities + total_equity)
    is_balanced = to_cents(total_assets) == to_cents(liabilities_and_equity)
    issues: List[schemas.IntegrityIssue] = []
    if not is_balanced:
        message = f"Total assets {total_assets} do not equal liabilities plus equity {liabilities_and_equity}."
        if to_cents(total_assets - liabilities_and_equity) == to_cents(unclosed_earnings):
            message += f" The difference matches unclosed earnings of {unclosed_earnings}; retained earnings have not been posted."
        _surface(
            LedgerIntegrityError(
                "balance_sheet_equation",
                message,
                expected=total_assets,
                actual=liabilities_and_equity,
            ),
            issues,
            company_id=company_id,
            strict=strict,
        )

    return schemas.BalanceSheetResponse(
        as_of=as_of,
        assets=_report_rows(by_type["ASSET"]),
        liabilities=_report_rows(by_type["LIABILITY"]),
        equity=_report_rows(by_type["EQUITY"]),
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        unclosed_earnings=unclosed_earnings,
        is_balanced=is_balanced,
        integrity_errors=issues,
    )


def cash_flow(
    db: Session,
    company_id: int,
    *,
    start_date: date,
    end_date: date,
    classification: Optional[schemas.CashFlowClassification] = None,
    timeout_seconds=None,
    deadline: Optional[QueryDeadline] = None,
) -> schemas.CashFlowResponse:
    check_window(start_date, end_date)
    classification = classification or load_classification()
    deadline = deadline or make_deadline("cash_flow", timeout_seconds)

    buckets: dict[str, List[schemas.CashFlowItem]] = {
        "operating": [],
        "investing": [],
        "financing": [],
        "unclassified": [],
    }
    for entry_type, reference_type, entry_count, amount in cash_movements(
        db, company_id, classification, start_date=start_date, end_date=end_date, deadline=deadline
    ):
        activity = classify(classification, entry_type, reference_type) or "unclassified"
        buckets[activity].append(
            schemas.CashFlowItem(
                entry_type=entry_type,
                reference_type=reference_type,
                entry_count=entry_count,
                amount=amount,
            )
        )

    nets = {name: quantize_money(sum((item.amount for item in items), ZERO)) for name, items in buckets.items()}
    if buckets["unclassified"]:
        logger.info(
            "Cash flow company_id=%s has %s unclassified movement groups under classification %s",
            company_id,
            len(buckets["unclassified"]),
            classification.version,
        )

    return schemas.CashFlowResponse(
        start_date=start_date,
        end_date=end_date,
        classification_version=classification.version,
        operating_activities=buckets["operating"],
        investing_activities=buckets["investing"],
        financing_activities=buckets["financing"],
        unclassified_activities=buckets["unclassified"],
        net_operating=nets["operating"],
        net_investing=nets["investing"],
        net_financing=nets["financing"],
        net_unclassified=nets["unclassified"],
        net_change_in_cash=quantize_money(sum(nets.values(), ZERO)),
    )
