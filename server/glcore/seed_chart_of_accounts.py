import logging

from sqlalchemy.orm import Session

from .chart_of_accounts.schemas import ChartAccountCreate
from .chart_of_accounts.service import create_account
from .db import SessionLocal
from .models import Account, Company

logger = logging.getLogger(__name__)

# (code, name, type)
ROOT_ACCOUNTS = [
    ("1000", "Assets", "ASSET"),
    ("2000", "Liabilities", "LIABILITY"),
    ("3000", "Equity", "EQUITY"),
    ("4000", "Revenue", "REVENUE"),
    ("5000", "Expenses", "EXPENSE"),
]

# root code -> [(code, name)]
CATEGORY_ACCOUNTS = {
    "1000": [("1001", "Current Assets"), ("1500", "Property, Plant, and Equipment")],
    "2000": [("2001", "Current Liabilities"), ("2500", "Long-term Liabilities")],
    "3000": [("3001", "Owner's Equity")],
    "4000": [("4001", "Operating Revenues")],
    "5000": [("5001", "Operating Expenses")],
}

# category code -> [(code, name, account_category)]
NUMBERED_ACCOUNTS = {
    "1001": [
        ("1010", "Cash on Hand", "Cash"),
        ("1020", "Bank - Operating Account", "Bank"),
        ("1200", "Accounts Receivable", "Receivables"),
        ("1300", "Inventory", "Inventory"),
        ("1400", "Prepaid Expenses", "Prepayments"),
    ],
    "1500": [
        ("1510", "Equipment", "Fixed Assets"),
        ("1520", "Vehicles", "Fixed Assets"),
        ("1590", "Accumulated Depreciation", "Fixed Assets"),
    ],
    "2001": [
        ("2100", "Accounts Payable", "Payables"),
        ("2200", "Wages Payable", "Accrued Liabilities"),
        ("2300", "Sales Tax Payable", "Taxes"),
    ],
    "2500": [
        ("2510", "Loans Payable", "Loans"),
    ],
    "3001": [
        ("3100", "Owner's Capital", "Capital"),
        ("3200", "Retained Earnings", "Retained Earnings"),
    ],
    "4001": [
        ("4100", "Sales Revenue", "Sales"),
        ("4200", "Service Revenue", "Services"),
        ("4900", "Other Income", "Other Income"),
    ],
    "5001": [
        ("5100", "Cost of Goods Sold", "Cost of Sales"),
        ("5200", "Salaries and Wages", "Payroll"),
        ("5300", "Rent", "Occupancy"),
        ("5400", "Utilities", "Occupancy"),
        ("5500", "Marketing", "Marketing"),
        ("5900", "General Expenses", "General"),
    ],
}

# Accounts the invoice, payment and expense producers post to.
SYSTEM_ACCOUNT_CODES = {"1010", "1020", "1200", "2100", "3200", "4100", "5900"}


def _get_or_create_company(db: Session) -> Company:
    company = db.query(Company).order_by(Company.id.asc()).first()
    if company:
        return company
    company = Company(name="Demo Company", base_currency="USD")
    db.add(company)
    db.flush()
    return company


def _ensure_account(
    db: Session,
    company_id: int,
    code: str,
    name: str,
    account_type: str,
    *,
    parent: Account | None,
    category: str | None = None,
) -> tuple[Account, bool]:
    existing = db.query(Account).filter(Account.company_id == company_id, Account.code == code).first()
    if existing:
        return existing, False

    account = create_account(
        db,
        company_id,
        ChartAccountCreate(
            account_code=code,
            account_name=name,
            account_type=account_type,
            account_category=category,
            parent_account_id=parent.id if parent else None,
        ),
        is_system_account=code in SYSTEM_ACCOUNT_CODES,
    )
    return account, True


def seed_default_chart(db: Session, company_id: int) -> tuple[int, int]:
    """Create the default chart for one tenant. Accounts whose code already exists are left untouched.

    Returns ``(inserted, existing)``.
    """
    inserted = 0
    existing = 0

    roots: dict[str, Account] = {}
    categories: dict[str, Account] = {}

    for code, name, account_type in ROOT_ACCOUNTS:
        roots[code], created = _ensure_account(db, company_id, code, name, account_type, parent=None)
        if created:
            inserted += 1
        else:
            existing += 1

    for root_code, children in CATEGORY_ACCOUNTS.items():
        root = roots[root_code]
        for code, name in children:
            categories[code], created = _ensure_account(db, company_id, code, name, root.type, parent=root)
            if created:
                inserted += 1
            else:
                existing += 1

    for parent_code, accounts in NUMBERED_ACCOUNTS.items():
        parent = categories[parent_code]
        for code, name, category in accounts:
            _, created = _ensure_account(db, company_id, code, name, parent.type, parent=parent, category=category)
            if created:
                inserted += 1
            else:
                existing += 1

    logger.info("Seeded chart of accounts company_id=%s inserted=%s existing=%s", company_id, inserted, existing)
    return inserted, existing


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    db: Session = SessionLocal()
    try:
        company = _get_or_create_company(db)
        inserted, existing = seed_default_chart(db, company.id)
        db.commit()
        print(f"Chart of Accounts seed complete: inserted={inserted}, existing={existing}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
