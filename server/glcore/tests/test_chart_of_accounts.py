from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from glcore.chart_of_accounts import schemas
from glcore.chart_of_accounts.service import (
    account_summary,
    create_account,
    current_balance,
    delete_account,
    list_accounts,
    update_account,
)
from glcore.errors import (
    AccountInUse,
    DuplicateAccountCode,
    ImmutableField,
    InvalidHierarchy,
    NotFound,
    ProtectedAccount,
)
from glcore.models import Account


def _create(db, code, account_type, **kwargs):
    account = create_account(
        db,
        1,
        schemas.ChartAccountCreate(
            account_code=code,
            account_name=kwargs.pop("account_name", f"Account {code}"),
            account_type=account_type,
            **kwargs,
        ),
    )
    db.commit()
    return account


def test_create_list_and_get_account(client: TestClient):
    created = client.post(
        "/api/chart-of-accounts",
        json={
            "account_code": "1010",
            "account_name": "Cash",
            "account_type": "ASSET",
            "account_category": "Cash",
            "opening_balance": "250.00",
        },
    )
    assert created.status_code == 201
    body = created.json()
    assert body["normal_balance"] == "debit"
    assert body["is_system_account"] is False
    assert Decimal(body["opening_balance"]) == Decimal("250.00")

    listed = client.get("/api/chart-of-accounts")
    assert [row["account_code"] for row in listed.json()] == ["1010"]

    fetched = client.get(f"/api/chart-of-accounts/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["transaction_count"] == 0


def test_duplicate_code_returns_conflict(client: TestClient, db):
    _create(db, "1010", "ASSET")
    with pytest.raises(DuplicateAccountCode):
        create_account(
            db, 1, schemas.ChartAccountCreate(account_code="1010", account_name="Dup", account_type="ASSET")
        )
    db.rollback()

    response = client.post(
        "/api/chart-of-accounts",
        json={"account_code": "1010", "account_name": "Dup", "account_type": "ASSET"},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DUPLICATE_ACCOUNT_CODE"


def test_same_code_allowed_in_another_tenant(db, make_account):
    make_account("1010", "ASSET", company_id=2)
    account = _create(db, "1010", "ASSET")
    assert account.company_id == 1


def test_parent_must_share_account_type(client: TestClient, db):
    liability = _create(db, "2100", "LIABILITY")

    with pytest.raises(InvalidHierarchy) as exc_info:
        create_account(
            db,
            1,
            schemas.ChartAccountCreate(
                account_code="1010", account_name="Cash", account_type="ASSET", parent_account_id=liability.id
            ),
        )
    assert exc_info.value.details["reason"] == "type_mismatch"
    db.rollback()

    response = client.post(
        "/api/chart-of-accounts",
        json={"account_code": "1010", "account_name": "Cash", "account_type": "ASSET", "parent_account_id": liability.id},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_HIERARCHY"


def test_parent_from_another_tenant_is_rejected(db, make_account):
    foreign_parent = make_account("1000", "ASSET", company_id=2)
    with pytest.raises(InvalidHierarchy) as exc_info:
        _create(db, "1010", "ASSET", parent_account_id=foreign_parent.id)
    assert exc_info.value.details["reason"] == "parent_not_found"


def test_reparenting_rejects_self_and_cycles(db):
    root = _create(db, "1000", "ASSET")
    child = _create(db, "1100", "ASSET", parent_account_id=root.id)
    grandchild = _create(db, "1110", "ASSET", parent_account_id=child.id)

    with pytest.raises(InvalidHierarchy) as exc_info:
        update_account(db, 1, root.id, schemas.ChartAccountUpdate(parent_account_id=root.id))
    assert exc_info.value.details["reason"] == "self_parent"

    with pytest.raises(InvalidHierarchy) as exc_info:
        update_account(db, 1, root.id, schemas.ChartAccountUpdate(parent_account_id=grandchild.id))
    assert exc_info.value.details["reason"] == "cycle"
    db.rollback()

    moved = update_account(db, 1, grandchild.id, schemas.ChartAccountUpdate(parent_account_id=root.id))
    assert moved.parent_id == root.id


def test_code_type_and_opening_balance_are_immutable(client: TestClient, db):
    account = _create(db, "1010", "ASSET", opening_balance=Decimal("10.00"))

    for field, value in (("account_code", "1011"), ("account_type", "EXPENSE"), ("opening_balance", "12.00")):
        response = client.patch(f"/api/chart-of-accounts/{account.id}", json={field: value})
        assert response.status_code == 400
        assert response.json()["detail"] == {
            "code": "IMMUTABLE_FIELD",
            "message": f"Field '{field}' cannot be changed after creation.",
            "field": field,
        }

    unchanged = client.patch(
        f"/api/chart-of-accounts/{account.id}",
        json={"account_code": "1010", "account_name": "Petty Cash", "account_category": "Cash"},
    )
    assert unchanged.status_code == 200
    assert unchanged.json()["account_name"] == "Petty Cash"
    assert unchanged.json()["account_category"] == "Cash"


def test_immutable_field_error_from_service(db):
    account = _create(db, "1010", "ASSET")
    with pytest.raises(ImmutableField):
        update_account(db, 1, account.id, schemas.ChartAccountUpdate(account_type="LIABILITY"))


def test_system_accounts_are_protected(client: TestClient, db):
    system = create_account(
        db,
        1,
        schemas.ChartAccountCreate(account_code="3200", account_name="Retained Earnings", account_type="EQUITY"),
        is_system_account=True,
    )
    db.commit()

    deleted = client.delete(f"/api/chart-of-accounts/{system.id}")
    assert deleted.status_code == 409
    assert deleted.json()["detail"]["code"] == "PROTECTED_ACCOUNT"

    with pytest.raises(ProtectedAccount):
        update_account(db, 1, system.id, schemas.ChartAccountUpdate(is_active=False))
    db.rollback()

    renamed = client.patch(f"/api/chart-of-accounts/{system.id}", json={"account_name": "Accumulated Earnings"})
    assert renamed.status_code == 200
    assert renamed.json()["account_name"] == "Accumulated Earnings"
    assert renamed.json()["is_active"] is True


def test_delete_account_with_posted_lines_is_rejected(client: TestClient, db, post_simple):
    cash = _create(db, "1010", "ASSET")
    revenue = _create(db, "4100", "REVENUE")
    post_simple(cash, revenue, "100.00")

    with pytest.raises(AccountInUse) as exc_info:
        delete_account(db, 1, cash.id)
    assert exc_info.value.details["line_count"] == 1
    db.rollback()

    response = client.delete(f"/api/chart-of-accounts/{revenue.id}")
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ACCOUNT_IN_USE"

    deactivated = client.patch(f"/api/chart-of-accounts/{revenue.id}", json={"is_active": False})
    assert deactivated.status_code == 200
    assert deactivated.json()["transaction_count"] == 1


def test_delete_account_with_children_is_rejected(db):
    root = _create(db, "1000", "ASSET")
    _create(db, "1100", "ASSET", parent_account_id=root.id)
    with pytest.raises(AccountInUse) as exc_info:
        delete_account(db, 1, root.id)
    assert exc_info.value.details["child_count"] == 1


def test_delete_unused_account(client: TestClient, db):
    account_id = _create(db, "5500", "EXPENSE").id
    response = client.delete(f"/api/chart-of-accounts/{account_id}")
    assert response.status_code == 200
    db.expire_all()
    assert db.get(Account, account_id) is None
    assert client.get(f"/api/chart-of-accounts/{account_id}").status_code == 404


def test_list_filters(db, make_account):
    assets = _create(db, "1000", "ASSET")
    _create(db, "1010", "ASSET", parent_account_id=assets.id, account_category="Cash")
    _create(db, "1020", "ASSET", parent_account_id=assets.id, account_category="Bank", is_active=False)
    _create(db, "5900", "EXPENSE")
    make_account("1030", "ASSET", company_id=2)

    def codes(**filters):
        return [account.code for account, _ in list_accounts(db, 1, **filters)]

    assert codes() == ["1000", "1010", "1020", "5900"]
    assert codes(account_type="asset") == ["1000", "1010", "1020"]
    assert codes(account_type="ASSET", active_only=True) == ["1000", "1010"]
    assert codes(category="Bank") == ["1020"]
    assert codes(parent_account_id=assets.id) == ["1010", "1020"]
    assert codes(root_only=True) == ["1000", "5900"]


def test_account_is_not_visible_to_other_tenant(client: TestClient, make_account):
    foreign = make_account("1010", "ASSET", company_id=2)
    assert client.get(f"/api/chart-of-accounts/{foreign.id}").status_code == 404
    assert client.patch(f"/api/chart-of-accounts/{foreign.id}", json={"account_name": "Mine"}).status_code == 404
    assert client.delete(f"/api/chart-of-accounts/{foreign.id}").status_code == 404


def test_current_balance_and_summary(client: TestClient, db, post_simple):
    cash = _create(db, "1010", "ASSET", opening_balance=Decimal("500.00"))
    revenue = _create(db, "4100", "REVENUE")
    rent = _create(db, "5300", "EXPENSE")
    post_simple(cash, revenue, "100.00", entry_date=date(2026, 1, 15))
    post_simple(rent, cash, "40.00", entry_date=date(2026, 2, 15))

    assert current_balance(db, 1, cash.id, as_of=date(2026, 1, 31)).balance == Decimal("600.00")
    assert current_balance(db, 1, cash.id, as_of=date(2026, 2, 28)).balance == Decimal("560.00")
    assert current_balance(db, 1, revenue.id, as_of=date(2026, 2, 28)).balance == Decimal("100.00")
    with pytest.raises(NotFound):
        current_balance(db, 1, 9999)

    summary = account_summary(db, 1, cash.id, start_date=date(2026, 2, 1), end_date=date(2026, 2, 28))
    assert summary.summary.opening_balance == Decimal("500.00")
    assert summary.summary.current_balance == Decimal("560.00")
    assert summary.summary.total_debits == Decimal("0.00")
    assert summary.summary.total_credits == Decimal("40.00")
    assert summary.account.transaction_count == 2

    response = client.get(f"/api/chart-of-accounts/{cash.id}/balance", params={"as_of": "2026-01-31"})
    assert response.status_code == 200
    assert Decimal(response.json()["balance"]) == Decimal("600.00")

    ledger = client.get(f"/api/chart-of-accounts/{cash.id}/ledger")
    assert ledger.status_code == 200
    assert [Decimal(row["balance_after"]) for row in ledger.json()["transactions"]] == [
        Decimal("600.00"),
        Decimal("560.00"),
    ]

    inverted = {"start_date": "2026-03-01", "end_date": "2026-02-01"}
    for path in ("ledger", "summary"):
        response = client.get(f"/api/chart-of-accounts/{cash.id}/{path}", params=inverted)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_QUERY"
