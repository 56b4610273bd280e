from contextlib import contextmanager
from decimal import Decimal
import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from glcore.errors import ReportTimeout


logger = logging.getLogger(__name__)

QUERY_CANCELED_SQLSTATE = "57014"


def _is_query_canceled(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return sqlstate == QUERY_CANCELED_SQLSTATE


class QueryDeadline:
    """Wall-clock budget shared by every query of one report.

    ``check`` runs between queries; ``apply`` also pushes the remaining budget
    to the server on PostgreSQL so a single long aggregation is cancelled there.
    """

    def __init__(self, timeout_seconds, *, label: str = "report", clock=time.monotonic):
        self.timeout_seconds = Decimal(str(timeout_seconds)) if timeout_seconds else None
        self.label = label
        self._clock = clock
        self._started = clock()

    @property
    def enabled(self) -> bool:
        return self.timeout_seconds is not None and self.timeout_seconds > 0

    def remaining_ms(self) -> int | None:
        if not self.enabled:
            return None
        elapsed = Decimal(str(self._clock() - self._started))
        return int((self.timeout_seconds - elapsed) * 1000)

    def check(self) -> None:
        remaining = self.remaining_ms()
        if remaining is not None and remaining <= 0:
            logger.warning("%s exceeded its %ss budget", self.label, self.timeout_seconds)
            raise ReportTimeout(self.label, self.timeout_seconds)

    def apply(self, db: Session) -> None:
        self.check()
        remaining = self.remaining_ms()
        if remaining is None or db.get_bind().dialect.name != "postgresql":
            return
        db.execute(text(f"SET LOCAL statement_timeout = {max(int(remaining), 1)}"))


@contextmanager
def bounded_query(db: Session, deadline: QueryDeadline | None):
    """Run one query under the deadline, surfacing server cancellation as ``ReportTimeout``."""
    if deadline is None:
        yield
        return
    deadline.apply(db)
    try:
        yield
    except DBAPIError as exc:
        if _is_query_canceled(exc):
            db.rollback()
            logger.warning("%s cancelled by statement_timeout", deadline.label)
            raise ReportTimeout(deadline.label, deadline.timeout_seconds) from exc
        raise
    deadline.check()
