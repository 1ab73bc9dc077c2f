"""
Cash Session (caja) Service

WHY: Track the cash drawer from opening count to closing count and
detect discrepancies (errors, theft) at close.

DESIGN PRINCIPLES:
- At most one open session system-wide (service check under lock plus a
  partial unique index in the database)
- Sessions are immutable once closed and never reopened or deleted
- Reconciliation at close:
    expected   = initial + sum(sale totals recorded under the session)
    difference = actual - expected   (> 0 surplus, < 0 shortage)
  A non-zero difference is an outcome, not an error.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..errors import (
    InvalidSessionState,
    NotFoundError,
    PersistenceError,
    SessionAlreadyOpen,
    ValidationError,
)
from ..models import CashSession, Sale
from ..time_utils import utcnow
from ..validation import clean_text, non_negative_cents
from .concurrency import lock_for_update, run_with_retry


class SessionStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


OUTCOME_SURPLUS = "surplus"
OUTCOME_SHORTAGE = "shortage"
OUTCOME_BALANCED = "balanced"


@dataclass(frozen=True)
class CloseSummary:
    initial_amount_cents: int
    total_sales_cents: int
    sales_count: int
    expected_amount_cents: int
    actual_amount_cents: int
    difference_cents: int

    @property
    def outcome(self) -> str:
        if self.difference_cents > 0:
            return OUTCOME_SURPLUS
        if self.difference_cents < 0:
            return OUTCOME_SHORTAGE
        return OUTCOME_BALANCED

    def to_dict(self) -> dict:
        return {
            "initial_amount_cents": self.initial_amount_cents,
            "total_sales_cents": self.total_sales_cents,
            "sales_count": self.sales_count,
            "expected_amount_cents": self.expected_amount_cents,
            "actual_amount_cents": self.actual_amount_cents,
            "difference_cents": self.difference_cents,
            "outcome": self.outcome,
        }


def _open_query():
    return db.session.query(CashSession).filter_by(status=SessionStatus.OPEN.value)


def _sales_totals(session_id: int) -> tuple[int, int]:
    """(total_cents, count) of sales attributed to the session."""
    total, count = db.session.query(
        func.coalesce(func.sum(Sale.total_cents), 0),
        func.count(Sale.id),
    ).filter(Sale.cash_session_id == session_id).one()
    return int(total or 0), int(count or 0)


# =============================================================================
# OPEN
# =============================================================================

def open_session(initial_amount_cents: int, *, operator_user_id: int | None = None) -> CashSession:
    """
    Open the cash drawer session.

    Raises:
        InvalidAmount: initial amount negative or malformed
        SessionAlreadyOpen: another session is open (it is left untouched)
    """
    initial_amount_cents = non_negative_cents(initial_amount_cents, "initial_amount_cents")

    def _op():
        existing = lock_for_update(_open_query()).first()
        if existing:
            raise SessionAlreadyOpen(
                f"Cash session {existing.id} is already open",
                details={"session_id": existing.id},
            )

        session = CashSession(
            status=SessionStatus.OPEN.value,
            initial_amount_cents=initial_amount_cents,
            opening_date=utcnow(),
            operator_user_id=operator_user_id,
        )
        db.session.add(session)
        db.session.commit()
        return session

    try:
        session = run_with_retry(_op)
    except IntegrityError as exc:
        # Lost the race against a concurrent open; the unique index caught it
        raise SessionAlreadyOpen("A cash session is already open") from exc
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to open cash session") from exc

    current_app.logger.info(
        "Cash session %s opened with %s cents (operator=%s)",
        session.id, initial_amount_cents, operator_user_id,
    )
    return session


def get_current_open() -> CashSession | None:
    """The single open session, or None when the drawer is closed."""
    return _open_query().first()


# =============================================================================
# CLOSE
# =============================================================================

def close_session(
    session_id: int,
    actual_amount_cents: int,
    notes: str | None = None,
) -> tuple[CashSession, CloseSummary]:
    """
    Close a session and reconcile expected vs counted cash.

    IMMUTABLE: Once closed, session cannot be reopened or modified.

    Args:
        session_id: Session to close
        actual_amount_cents: Cash counted in the drawer
        notes: Optional closing notes

    Returns:
        (closed session, CloseSummary)

    Raises:
        InvalidAmount: actual amount negative or malformed
        NotFoundError: unknown session
        InvalidSessionState: session is not open (nothing changes)
    """
    actual_amount_cents = non_negative_cents(actual_amount_cents, "actual_amount_cents")
    notes = clean_text(notes)

    def _op():
        session = lock_for_update(
            db.session.query(CashSession).filter_by(id=session_id)
        ).populate_existing().first()

        if not session:
            raise NotFoundError(f"Cash session {session_id} not found", details={"session_id": session_id})

        if session.status != SessionStatus.OPEN.value:
            raise InvalidSessionState(
                f"Cash session {session_id} is {session.status}, not open",
                details={"session_id": session_id, "status": session.status},
            )

        total_sales, sales_count = _sales_totals(session_id)
        expected = session.initial_amount_cents + total_sales
        difference = actual_amount_cents - expected

        session.status = SessionStatus.CLOSED.value
        session.closing_date = utcnow()
        session.actual_amount_cents = actual_amount_cents
        session.expected_amount_cents = expected
        session.difference_cents = difference
        session.notes = notes

        db.session.commit()

        summary = CloseSummary(
            initial_amount_cents=session.initial_amount_cents,
            total_sales_cents=total_sales,
            sales_count=sales_count,
            expected_amount_cents=expected,
            actual_amount_cents=actual_amount_cents,
            difference_cents=difference,
        )
        return session, summary

    try:
        session, summary = run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to close cash session {session_id}") from exc

    current_app.logger.info(
        "Cash session %s closed: expected=%s actual=%s difference=%s (%s)",
        session_id,
        summary.expected_amount_cents,
        summary.actual_amount_cents,
        summary.difference_cents,
        summary.outcome,
    )
    return session, summary


# =============================================================================
# REPORTING
# =============================================================================

def get_session(session_id: int) -> CashSession:
    session = db.session.get(CashSession, session_id)
    if session is None:
        raise NotFoundError(f"Cash session {session_id} not found", details={"session_id": session_id})
    return session


def list_sessions(status: str | None = None, limit: int = 100) -> list[CashSession]:
    query = db.session.query(CashSession)
    if status:
        try:
            status = SessionStatus(status).value
        except ValueError:
            raise ValidationError("status must be 'open' or 'closed'")
        query = query.filter_by(status=status)
    return query.order_by(CashSession.opening_date.desc(), CashSession.id.desc()).limit(limit).all()


def get_session_summary(session_id: int) -> dict:
    """
    Running totals for a session.

    Open sessions report what close would expect right now; closed
    sessions report their stored reconciliation.
    """
    session = get_session(session_id)
    total_sales, sales_count = _sales_totals(session_id)

    if session.status == SessionStatus.CLOSED.value:
        expected = session.expected_amount_cents
    else:
        expected = session.initial_amount_cents + total_sales

    return {
        "session": session.to_dict(),
        "initial_amount_cents": session.initial_amount_cents,
        "total_sales_cents": total_sales,
        "sales_count": sales_count,
        "expected_amount_cents": expected,
        "actual_amount_cents": session.actual_amount_cents,
        "difference_cents": session.difference_cents,
        "is_closed": session.status == SessionStatus.CLOSED.value,
    }
