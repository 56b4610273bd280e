import json
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from glcore import config
from glcore.models import Account, JournalEntry, JournalLine
from glcore.reports.schemas import CashFlowClassification, ClassificationRule
from glcore.sql_expressions import QueryDeadline, bounded_query
from glcore.utils import quantize_money


logger = logging.getLogger(__name__)

DEFAULT_CLASSIFICATION = CashFlowClassification(
    version="default-1",
    cash_categories=["Cash", "Bank"],
    rules=[
        ClassificationRule(entry_type="invoice", activity="operating"),
        ClassificationRule(entry_type="payment", activity="operating"),
        ClassificationRule(entry_type="expense", activity="operating"),
    ],
)


def load_classification(path: Optional[str] = None) -> CashFlowClassification:
    """Classification map from ``path`` (or the configured path), else the shipped default."""
    path = path or config.CASH_FLOW_CLASSIFICATION_PATH
    if not path:
        return DEFAULT_CLASSIFICATION
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    classification = CashFlowClassification.model_validate(raw)
    logger.info("Loaded cash flow classification version=%s rules=%s", classification.version, len(classification.rules))
    return classification


def _rule_matches(rule: ClassificationRule, entry_type: str, reference_type: Optional[str]) -> bool:
    if rule.entry_type is not None and rule.entry_type != entry_type:
        return False
    if rule.reference_type is not None and rule.reference_type != reference_type:
        return False
    return rule.entry_type is not None or rule.reference_type is not None


def classify(classification: CashFlowClassification, entry_type: str, reference_type: Optional[str]) -> Optional[str]:
    """Activity of the most specific matching rule; ties go to the earlier rule. ``None`` when nothing matches."""
    best: Optional[ClassificationRule] = None
    for rule in classification.rules:
        if not _rule_matches(rule, entry_type, reference_type):
            continue
        if best is None or rule.specificity > best.specificity:
            best = rule
    return best.activity if best else None


def cash_movements(
    db: Session,
    company_id: int,
    classification: CashFlowClassification,
    *,
    start_date,
    end_date,
    deadline: Optional[QueryDeadline] = None,
) -> list[tuple[str, Optional[str], int, object]]:
    """Net debit minus credit on cash accounts, grouped by entry and reference type."""
    cash_filters = []
    if classification.cash_categories:
        cash_filters.append(Account.category.in_(classification.cash_categories))
    if classification.cash_account_ids:
        cash_filters.append(Account.id.in_(classification.cash_account_ids))
    if not cash_filters:
        return []

    query = (
        db.query(
            JournalEntry.entry_type,
            JournalEntry.reference_type,
            func.count(func.distinct(JournalEntry.id)),
            func.coalesce(func.sum(JournalLine.debit - JournalLine.credit), 0),
        )
        .join(JournalLine, JournalLine.journal_entry_id == JournalEntry.id)
        .join(Account, Account.id == JournalLine.account_id)
        .filter(
            JournalEntry.company_id == company_id,
            Account.company_id == company_id,
            JournalEntry.entry_date >= start_date,
            JournalEntry.entry_date <= end_date,
            or_(*cash_filters),
        )
        .group_by(JournalEntry.entry_type, JournalEntry.reference_type)
        .order_by(JournalEntry.entry_type.asc(), JournalEntry.reference_type.asc())
    )
    with bounded_query(db, deadline):
        rows = query.all()
    return [
        (entry_type, reference_type, int(count or 0), quantize_money(amount or 0))
        for entry_type, reference_type, count, amount in rows
    ]
