from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
import pytest

from glcore.accounting.posting import (
    JournalEntryInput,
    JournalLineInput,
    build_expense_entry,
    build_invoice_entry,
    build_offsetting_entry,
    build_payment_entry,
    ensure_balanced,
    validate_entry,
    validate_lines,
)
from glcore.accounting.service import post_entry
from glcore.errors import InvalidEntry, UnbalancedEntry
from glcore.models import JournalEntry


def test_balanced_entry_passes():
    lines = [
        JournalLineInput(account_id=1, debit=Decimal("10.00")),
        JournalLineInput(account_id=2, credit=Decimal("10.00")),
    ]
    ensure_balanced(lines)


def test_unbalanced_entry_reports_exact_imbalance():
    lines = [
        JournalLineInput(account_id=1, debit=Decimal("100.00")),
        JournalLineInput(account_id=2, credit=Decimal("90.00")),
    ]
    with pytest.raises(UnbalancedEntry) as exc_info:
        ensure_balanced(lines)

    assert exc_info.value.imbalance == Decimal("10.00")
    assert exc_info.value.to_dict()["imbalance"] == "10.00"
    assert exc_info.value.to_dict()["code"] == "UNBALANCED_ENTRY"


@pytest.mark.parametrize(
    "lines, reason",
    [
        ([], "no_lines"),
        ([JournalLineInput(account_id=1, debit=Decimal("5.00"), credit=Decimal("5.00"))], "single_direction"),
        ([JournalLineInput(account_id=1)], "single_direction"),
        ([JournalLineInput(account_id=1, debit=Decimal("-5.00"))], "negative_amount"),
        ([JournalLineInput(account_id=1, debit=Decimal("1.005"))], "sub_cent_amount"),
    ],
)
def test_validate_lines_rejects_malformed_lines(lines, reason):
    with pytest.raises(InvalidEntry) as exc_info:
        validate_lines(lines)
    assert exc_info.value.details["reason"] == reason


def test_validate_entry_rejects_unknown_type_and_blank_description():
    lines = [
        JournalLineInput(account_id=1, debit=Decimal("1.00")),
        JournalLineInput(account_id=2, credit=Decimal("1.00")),
    ]
    with pytest.raises(InvalidEntry):
        validate_entry(JournalEntryInput(entry_date=date(2026, 1, 1), description="x", lines=lines, entry_type="transfer"))
    with pytest.raises(InvalidEntry):
        validate_entry(JournalEntryInput(entry_date=date(2026, 1, 1), description="  ", lines=lines))


def test_invoice_entry_balances():
    entry = build_invoice_entry(
        entry_date=date(2026, 1, 1),
        accounts_receivable_id=10,
        revenue_account_id=20,
        amount=Decimal("250.00"),
        description="Invoice #1001",
        source_id=1001,
    )
    debits = sum(line.debit for line in entry.lines)
    credits = sum(line.credit for line in entry.lines)
    assert debits == credits == Decimal("250.00")
    assert entry.entry_type == "invoice"
    assert (entry.reference_type, entry.reference_id) == ("invoice", 1001)


def test_payment_and_expense_entries_balance():
    payment = build_payment_entry(
        entry_date=date(2026, 1, 2),
        cash_account_id=30,
        accounts_receivable_id=10,
        amount=Decimal("250.00"),
        description="Payment #2001",
    )
    expense = build_expense_entry(
        entry_date=date(2026, 1, 3),
        expense_account_id=50,
        paid_from_account_id=30,
        amount=Decimal("42.10"),
        description="Office supplies",
    )
    validate_entry(payment)
    validate_entry(expense)
    assert payment.entry_type == "payment"
    assert expense.lines[0].account_id == 50 and expense.lines[0].debit == Decimal("42.10")
    assert expense.lines[1].account_id == 30 and expense.lines[1].credit == Decimal("42.10")


def test_offsetting_entry_swaps_every_line():
    original = SimpleNamespace(
        id=7,
        entry_number="JE-2026-00007",
        lines=[
            SimpleNamespace(account_id=1, debit=Decimal("80.00"), credit=Decimal("0.00"), description="cash"),
            SimpleNamespace(account_id=2, debit=Decimal("0.00"), credit=Decimal("50.00"), description=None),
            SimpleNamespace(account_id=3, debit=Decimal("0.00"), credit=Decimal("30.00"), description=None),
        ],
    )

    offset = build_offsetting_entry(original, entry_date=date(2026, 2, 1))

    assert offset.entry_type == "adjustment"
    assert offset.reference_type == "journal_entry"
    assert offset.reference_id == 7
    assert offset.description == "Offset of JE-2026-00007"
    assert [(line.account_id, line.debit, line.credit) for line in offset.lines] == [
        (1, Decimal("0.00"), Decimal("80.00")),
        (2, Decimal("50.00"), Decimal("0.00")),
        (3, Decimal("30.00"), Decimal("0.00")),
    ]


def test_builders_reject_sub_cent_amounts():
    with pytest.raises(InvalidEntry) as exc_info:
        build_invoice_entry(
            entry_date=date(2026, 1, 1),
            accounts_receivable_id=10,
            revenue_account_id=20,
            amount=Decimal("10.005"),
            description="Invoice #1002",
        )
    assert exc_info.value.details["reason"] == "sub_cent_amount"

    with pytest.raises(InvalidEntry):
        build_expense_entry(
            entry_date=date(2026, 1, 3),
            expense_account_id=50,
            paid_from_account_id=30,
            amount=Decimal("0.001"),
            description="Rounding",
        )


@st.composite
def line_sets(draw, *, balanced: bool):
    """Debit amounts plus credits splitting the same total, shuffled; one credit is nudged when unbalanced."""
    debits = draw(
        st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("5000.00"), places=2),
            min_size=1,
            max_size=4,
        )
    )
    total_cents = sum(int(amount * 100) for amount in debits)
    cuts = []
    if total_cents > 1:
        cuts = sorted(draw(st.sets(st.integers(min_value=1, max_value=total_cents - 1), max_size=3)))
    credit_cents = [b - a for a, b in zip([0] + cuts, cuts + [total_cents])]
    if not balanced:
        index = draw(st.integers(min_value=0, max_value=len(credit_cents) - 1))
        nudge = draw(st.integers(min_value=1, max_value=999))
        if credit_cents[index] - nudge > 0 and draw(st.booleans()):
            nudge = -nudge
        credit_cents[index] += nudge

    lines = [("debit", amount) for amount in debits]
    lines += [("credit", Decimal(cents) / 100) for cents in credit_cents]
    return draw(st.permutations(lines))


def _to_inputs(lines, debit_account_id: int, credit_account_id: int) -> list[JournalLineInput]:
    return [
        JournalLineInput(account_id=debit_account_id, debit=amount)
        if side == "debit"
        else JournalLineInput(account_id=credit_account_id, credit=amount)
        for side, amount in lines
    ]


@pytest.fixture()
def posting_accounts(make_account):
    return make_account("1010", "ASSET", name="Cash"), make_account("4100", "REVENUE", name="Sales")


@given(lines=line_sets(balanced=True))
@settings(max_examples=100, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_balanced_line_sets_are_always_posted(db, posting_accounts, lines):
    cash, sales = posting_accounts
    entry = post_entry(
        db,
        1,
        JournalEntryInput(entry_date=date(2026, 1, 15), description="Generated", lines=_to_inputs(lines, cash.id, sales.id)),
    )
    db.commit()

    stored = db.query(JournalEntry).filter(JournalEntry.id == entry.id).one()
    expected = sum((amount for side, amount in lines if side == "debit"), Decimal("0.00"))
    assert len(stored.lines) == len(lines)
    assert sum((line.debit for line in stored.lines), Decimal("0.00")) == expected
    assert sum((line.credit for line in stored.lines), Decimal("0.00")) == expected


@given(lines=line_sets(balanced=False))
@settings(max_examples=100, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_unbalanced_line_sets_are_never_posted(db, posting_accounts, lines):
    cash, sales = posting_accounts
    before = db.query(JournalEntry).count()

    with pytest.raises(UnbalancedEntry) as exc_info:
        post_entry(
            db,
            1,
            JournalEntryInput(
                entry_date=date(2026, 1, 15), description="Generated", lines=_to_inputs(lines, cash.id, sales.id)
            ),
        )
    db.rollback()

    assert exc_info.value.imbalance > Decimal("0.00")
    assert db.query(JournalEntry).count() == before
