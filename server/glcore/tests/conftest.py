from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from glcore.accounting.posting import JournalEntryInput, JournalLineInput
from glcore.accounting.service import post_entry
from glcore.auth import get_current_user
from glcore.db import Base, get_db
from glcore.main import app
from glcore.models import Account, Company, User


@pytest.fixture(autouse=True)
def override_auth(request):
    if request.node.get_closest_marker("real_auth"):
        yield
        return

    app.dependency_overrides[get_current_user] = lambda: User(
        id=1,
        company_id=1,
        email="admin@glcore.local",
        full_name="Test Admin",
        is_active=True,
    )
    yield
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    with TestingSessionLocal() as db:
        db.add_all(
            [
                Company(id=1, name="Demo", base_currency="USD"),
                Company(id=2, name="Other Tenant", base_currency="USD"),
            ]
        )
        db.flush()
        db.add_all(
            [
                User(id=1, company_id=1, email="admin@glcore.local", full_name="Test Admin"),
                User(id=2, company_id=2, email="owner@other.local", full_name="Other Owner"),
            ]
        )
        db.commit()

    yield TestingSessionLocal
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def make_account(db):
    def _make(code, account_type, *, name=None, category=None, company_id=1, **kwargs):
        account = Account(
            company_id=company_id,
            code=code,
            name=name or f"Account {code}",
            type=account_type,
            category=category,
            **kwargs,
        )
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture()
def post_simple(db):
    """Post a two-line entry debiting one account and crediting another, then commit."""

    def _post(debit_account, credit_account, amount, *, entry_date=date(2026, 3, 15), company_id=1, **kwargs):
        amount = Decimal(amount)
        entry = post_entry(
            db,
            company_id,
            JournalEntryInput(
                entry_date=entry_date,
                description=kwargs.pop("description", "Test entry"),
                lines=[
                    JournalLineInput(account_id=debit_account.id, debit=amount),
                    JournalLineInput(account_id=credit_account.id, credit=amount),
                ],
                **kwargs,
            ),
        )
        db.commit()
        return entry

    return _post
