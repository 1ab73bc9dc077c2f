import pytest

from storecore.errors import (
    InsufficientStock,
    InvalidQuantity,
    InvalidReason,
    NotFoundError,
    ValidationError,
)
from storecore.models import InventoryAdjustment, StockMovement
from storecore.services import adjustment_service

from conftest import stock_of


def test_increase_records_before_and_after(db_session, product):
    adjustment = adjustment_service.adjust(product.id, "increase", 5, "conteo", "  recount  ")

    assert adjustment.previous_stock == 10
    assert adjustment.new_stock == 15
    assert adjustment.reason_description == "recount"
    assert stock_of(product.id) == 15

    movement = db_session.get(StockMovement, adjustment.stock_movement_id)
    assert movement.reference_type == "inventory_adjustment"
    assert movement.reference_id == adjustment.id
    assert movement.quantity_delta == 5


def test_decrease(db_session, product):
    adjustment = adjustment_service.adjust(product.id, "decrease", 4, "merma")

    assert adjustment.previous_stock == 10
    assert adjustment.new_stock == 6
    assert stock_of(product.id) == 6


def test_decrease_below_zero_writes_nothing(db_session, product):
    with pytest.raises(InsufficientStock):
        adjustment_service.adjust(product.id, "decrease", 11, "daño")

    assert stock_of(product.id) == 10
    assert db_session.query(InventoryAdjustment).count() == 0
    assert db_session.query(StockMovement).count() == 0


@pytest.mark.parametrize("quantity", [0, -3, "1.5", 2.5, "1e3", None])
def test_invalid_quantity(db_session, product, quantity):
    with pytest.raises(InvalidQuantity):
        adjustment_service.adjust(product.id, "increase", quantity, "conteo")
    assert stock_of(product.id) == 10


def test_invalid_reason(db_session, product):
    with pytest.raises(InvalidReason):
        adjustment_service.adjust(product.id, "increase", 1, "regalo")


def test_invalid_type(db_session, product):
    with pytest.raises(ValidationError):
        adjustment_service.adjust(product.id, "sideways", 1, "conteo")


def test_blank_description_is_dropped(db_session, product):
    adjustment = adjustment_service.adjust(product.id, "increase", 1, "otro", "   ")
    assert adjustment.reason_description is None


def test_missing_product(db_session):
    with pytest.raises(NotFoundError):
        adjustment_service.adjust(404, "increase", 1, "conteo")


def test_history_is_newest_first(db_session, product, second_product):
    first = adjustment_service.adjust(product.id, "increase", 1, "conteo")
    second = adjustment_service.adjust(product.id, "decrease", 2, "merma")
    adjustment_service.adjust(second_product.id, "increase", 1, "conteo")

    history = adjustment_service.history(product.id)
    assert [a.id for a in history] == [second.id, first.id]
    assert history[0].previous_stock == history[1].new_stock


def test_history_of_product_without_adjustments_is_empty(db_session, product):
    assert adjustment_service.history(product.id) == []


def test_history_reads_are_repeatable(db_session, product):
    adjustment_service.adjust(product.id, "increase", 2, "devolucion")

    first = [a.to_dict() for a in adjustment_service.history(product.id)]
    second = [a.to_dict() for a in adjustment_service.history(product.id)]

    assert first == second
    assert stock_of(product.id) == 12


def test_longest_description_fits_the_movement_note(db_session, product):
    description = "x" * 500

    adjustment = adjustment_service.adjust(product.id, "increase", 1, "devolucion", description)

    movement = db_session.get(StockMovement, adjustment.stock_movement_id)
    assert adjustment.reason_description == description
    assert movement.note == f"Devolución: {description}"
    assert len(movement.note) <= StockMovement.__table__.c.note.type.length
