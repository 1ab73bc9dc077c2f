"""
Cash session tests: single open session, reconciliation at close, and
read operations that never change state.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from storecore.errors import (
    InvalidAmount,
    InvalidSessionState,
    NotFoundError,
    SessionAlreadyOpen,
)
from storecore.models import CashSession, Product
from storecore.services import cash_session_service, sales_service
from storecore.time_utils import utcnow


@pytest.fixture
def priced_product(db_session):
    product = Product(sku="GAS-001", name="Balon de gas", price_cents=12500, stock_quantity=20, stock_minimum=2)
    db_session.add(product)
    db_session.commit()
    return product


def _open_with_sales(priced_product):
    """Open with 100.00 and record two sales totalling 250.00."""
    session = cash_session_service.open_session(10000, operator_user_id=1)
    sales_service.record_sale([{"product_id": priced_product.id, "quantity": 1}])
    sales_service.record_sale([{"product_id": priced_product.id, "quantity": 1}])
    return session


def test_open_session(db_session):
    session = cash_session_service.open_session(10000, operator_user_id=4)

    assert session.status == "open"
    assert session.initial_amount_cents == 10000
    assert session.opening_date is not None
    assert session.closing_date is None
    assert cash_session_service.get_current_open().id == session.id


def test_second_open_is_rejected_and_first_untouched(db_session):
    first = cash_session_service.open_session(5000)

    with pytest.raises(SessionAlreadyOpen) as exc_info:
        cash_session_service.open_session(7000)

    assert exc_info.value.details["session_id"] == first.id
    current = cash_session_service.get_current_open()
    assert current.id == first.id
    assert current.initial_amount_cents == 5000
    assert db_session.query(CashSession).count() == 1


def test_database_rejects_two_open_sessions(db_session):
    db_session.add(CashSession(status="open", initial_amount_cents=0, opening_date=utcnow()))
    db_session.commit()

    db_session.add(CashSession(status="open", initial_amount_cents=0, opening_date=utcnow()))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


@pytest.mark.parametrize("amount", [-1, "abc", 1.5, None])
def test_open_rejects_bad_amount(db_session, amount):
    with pytest.raises(InvalidAmount):
        cash_session_service.open_session(amount)
    assert cash_session_service.get_current_open() is None


def test_close_with_shortage(db_session, priced_product):
    session = _open_with_sales(priced_product)

    closed, summary = cash_session_service.close_session(session.id, 34500, "Faltante")

    assert summary.total_sales_cents == 25000
    assert summary.sales_count == 2
    assert summary.expected_amount_cents == 35000
    assert summary.difference_cents == -500
    assert summary.outcome == "shortage"
    assert closed.status == "closed"
    assert closed.closing_date is not None
    assert closed.difference_cents == -500
    assert closed.notes == "Faltante"


def test_close_with_surplus(db_session, priced_product):
    session = _open_with_sales(priced_product)

    _, summary = cash_session_service.close_session(session.id, 35500)

    assert summary.expected_amount_cents == 35000
    assert summary.difference_cents == 500
    assert summary.outcome == "surplus"


def test_close_balanced_without_sales(db_session):
    session = cash_session_service.open_session(10000)

    _, summary = cash_session_service.close_session(session.id, 10000)

    assert summary.difference_cents == 0
    assert summary.outcome == "balanced"


def test_closed_session_cannot_be_closed_again(db_session):
    session = cash_session_service.open_session(0)
    cash_session_service.close_session(session.id, 0)

    with pytest.raises(InvalidSessionState):
        cash_session_service.close_session(session.id, 100)

    stored = cash_session_service.get_session(session.id)
    assert stored.actual_amount_cents == 0


def test_close_unknown_session(db_session):
    with pytest.raises(NotFoundError):
        cash_session_service.close_session(42, 0)


def test_new_session_can_open_after_close(db_session):
    first = cash_session_service.open_session(1000)
    cash_session_service.close_session(first.id, 1000)

    second = cash_session_service.open_session(2000)

    assert second.id != first.id
    assert cash_session_service.get_current_open().id == second.id


def test_reads_do_not_change_state(db_session, priced_product):
    session = _open_with_sales(priced_product)

    before = cash_session_service.get_session_summary(session.id)
    assert cash_session_service.get_current_open().id == session.id
    assert cash_session_service.get_current_open().id == session.id
    after = cash_session_service.get_session_summary(session.id)

    assert before == after
    assert after["expected_amount_cents"] == 35000
    assert after["is_closed"] is False


def test_get_current_open_when_none(db_session):
    assert cash_session_service.get_current_open() is None


def test_list_sessions_filters_by_status(db_session):
    first = cash_session_service.open_session(0)
    cash_session_service.close_session(first.id, 0)
    second = cash_session_service.open_session(0)

    assert [s.id for s in cash_session_service.list_sessions(status="open")] == [second.id]
    assert [s.id for s in cash_session_service.list_sessions(status="closed")] == [first.id]
