"""
Purchase order tests.

Covers creation totals, the pendiente -> recibida | cancelada state
machine, and partial receipt when the backing store fails mid-order.
"""

from decimal import Decimal

import pytest

from storecore.errors import (
    EmptyLineSet,
    InvalidLineQuantity,
    InvalidStateTransition,
    NotFoundError,
    PartialReceiptError,
    PersistenceError,
)
from storecore.models import DetailOrderBuy, OrderBuy, StockMovement
from storecore.services import order_buy_service, stock_ledger_service

from conftest import stock_of


@pytest.fixture
def order(db_session, provider, product, second_product):
    return order_buy_service.create(
        provider.id,
        [
            {"product_id": product.id, "cantidad": 5, "precio_unitario_cents": 200},
            {"product_id": second_product.id, "cantidad": 3, "precio_unitario_cents": 100},
            {"product_id": product.id, "cantidad": 2, "precio_unitario_cents": 200},
        ],
        observaciones="Pedido semanal",
    )


def test_create_computes_totals_once(order):
    assert order.estado == "pendiente"
    assert order.subtotal_cents == 1700
    assert order.igv_percent == Decimal("18")
    assert order.igv_cents == 306
    assert order.total_cents == 2006
    assert [line.line_number for line in order.lines] == [1, 2, 3]
    assert all(line.applied_at is None for line in order.lines)


def test_create_leaves_stock_untouched(db_session, order, product, second_product):
    assert stock_of(product.id) == 10
    assert stock_of(second_product.id) == 4
    assert db_session.query(StockMovement).count() == 0


def test_igv_rounds_half_up():
    assert order_buy_service.compute_totals(1003, Decimal("18")) == (181, 1184)
    assert order_buy_service.compute_totals(1000, Decimal("0")) == (0, 1000)


def test_create_requires_lines(db_session, provider):
    with pytest.raises(EmptyLineSet):
        order_buy_service.create(provider.id, [])


@pytest.mark.parametrize("line", [
    {"cantidad": 0, "precio_unitario_cents": 100},
    {"cantidad": -1, "precio_unitario_cents": 100},
    {"cantidad": 2, "precio_unitario_cents": 0},
    {"cantidad": "1.5", "precio_unitario_cents": 100},
])
def test_create_rejects_non_positive_lines(db_session, provider, product, line):
    with pytest.raises(InvalidLineQuantity):
        order_buy_service.create(provider.id, [{"product_id": product.id, **line}])
    assert db_session.query(OrderBuy).count() == 0


def test_create_rejects_unknown_provider_and_product(db_session, provider, product):
    with pytest.raises(NotFoundError):
        order_buy_service.create(999, [{"product_id": product.id, "cantidad": 1, "precio_unitario_cents": 1}])
    with pytest.raises(NotFoundError):
        order_buy_service.create(provider.id, [{"product_id": 999, "cantidad": 1, "precio_unitario_cents": 1}])


def test_receive_applies_every_line(db_session, order, product, second_product):
    result = order_buy_service.receive(order.id, received_by_user_id=3)

    assert result.completed
    assert result.order.estado == "recibida"
    assert result.order.fecha_entrega_real is not None
    assert stock_of(product.id) == 17
    assert stock_of(second_product.id) == 7

    # Line 3 sees line 1 already applied
    assert [(a.line_number, a.previous_stock, a.new_stock) for a in result.applied] == [
        (1, 10, 15),
        (2, 4, 7),
        (3, 15, 17),
    ]
    assert db_session.query(StockMovement).filter_by(reference_type="order_buy").count() == 3


def test_receive_twice_is_rejected(db_session, order, product):
    order_buy_service.receive(order.id)

    with pytest.raises(InvalidStateTransition):
        order_buy_service.receive(order.id)
    assert stock_of(product.id) == 17


def test_cancel_pendiente_order(db_session, order, product):
    cancelled = order_buy_service.cancel(order.id, "Proveedor sin stock", cancelled_by_user_id=2)

    assert cancelled.estado == "cancelada"
    assert cancelled.cancellation_reason == "Proveedor sin stock"
    assert cancelled.cancelled_at is not None
    assert stock_of(product.id) == 10


def test_terminal_states_reject_every_transition(db_session, order):
    order_buy_service.cancel(order.id)

    with pytest.raises(InvalidStateTransition):
        order_buy_service.receive(order.id)
    with pytest.raises(InvalidStateTransition):
        order_buy_service.cancel(order.id)


def test_cancel_received_order_is_rejected(db_session, order):
    order_buy_service.receive(order.id)

    with pytest.raises(InvalidStateTransition):
        order_buy_service.cancel(order.id)


def test_missing_order(db_session):
    with pytest.raises(NotFoundError):
        order_buy_service.receive(12345)
    with pytest.raises(NotFoundError):
        order_buy_service.cancel(12345)


def _fail_for(monkeypatch, failing_product_id):
    original = stock_ledger_service.apply_delta

    def apply_delta(product_id, signed_delta, **kwargs):
        if product_id == failing_product_id:
            raise PersistenceError("disk full")
        return original(product_id, signed_delta, **kwargs)

    monkeypatch.setattr(stock_ledger_service, "apply_delta", apply_delta)


def test_partial_receipt_reports_applied_and_failed_lines(
    db_session, monkeypatch, order, product, second_product
):
    _fail_for(monkeypatch, second_product.id)

    with pytest.raises(PartialReceiptError) as exc_info:
        order_buy_service.receive(order.id)

    result = exc_info.value.result
    assert [(a.line_number, a.previous_stock, a.new_stock) for a in result.applied] == [(1, 10, 15)]
    assert result.failed.line_number == 2
    assert result.failed.code == "PersistenceError"
    assert result.not_attempted == [3]
    assert exc_info.value.details["failed"]["line_number"] == 2

    # Line 1 stays applied; the order stays pendiente
    assert stock_of(product.id) == 15
    assert stock_of(second_product.id) == 4
    db_session.expire_all()
    assert db_session.get(OrderBuy, order.id).estado == "pendiente"
    applied = db_session.query(DetailOrderBuy).filter(DetailOrderBuy.applied_at.isnot(None)).all()
    assert [line.line_number for line in applied] == [1]


def test_retry_after_partial_receipt_skips_applied_lines(
    db_session, monkeypatch, order, product, second_product
):
    _fail_for(monkeypatch, second_product.id)
    with pytest.raises(PartialReceiptError):
        order_buy_service.receive(order.id)

    monkeypatch.undo()
    result = order_buy_service.receive(order.id)

    assert result.completed
    assert result.already_applied == [1]
    assert [a.line_number for a in result.applied] == [2, 3]
    assert result.order.estado == "recibida"
    assert stock_of(product.id) == 17
    assert stock_of(second_product.id) == 7


def test_list_orders_filters_by_estado(db_session, order, provider, product):
    other = order_buy_service.create(
        provider.id, [{"product_id": product.id, "cantidad": 1, "precio_unitario_cents": 50}]
    )
    order_buy_service.cancel(other.id)

    assert [o.id for o in order_buy_service.list_orders(estado="pendiente")] == [order.id]
    assert [o.id for o in order_buy_service.list_orders(estado="cancelada")] == [other.id]
    assert len(order_buy_service.list_orders(provider_id=provider.id)) == 2
