import pytest

from storecore.errors import InsufficientStock, InvalidQuantity, InvalidSessionState, ValidationError
from storecore.models import Sale, StockMovement
from storecore.services import cash_session_service, sales_service

from conftest import stock_of


@pytest.fixture
def open_session(db_session):
    return cash_session_service.open_session(10000)


def test_sale_requires_open_session(db_session, product):
    with pytest.raises(InvalidSessionState):
        sales_service.record_sale([{"product_id": product.id, "quantity": 1}])
    assert stock_of(product.id) == 10


def test_sale_decrements_stock_and_totals(db_session, open_session, product, second_product):
    sale = sales_service.record_sale(
        [
            {"product_id": product.id, "quantity": 2},
            {"product_id": second_product.id, "quantity": 1, "unit_price_cents": 400},
        ],
        "cash",
        operator_user_id=5,
    )

    assert sale.cash_session_id == open_session.id
    assert sale.total_cents == 2 * 450 + 400
    assert [line.line_total_cents for line in sale.lines] == [900, 400]
    assert stock_of(product.id) == 8
    assert stock_of(second_product.id) == 3
    assert db_session.query(StockMovement).filter_by(source="SALE").count() == 2


def test_sale_is_all_or_nothing(db_session, open_session, product, second_product):
    with pytest.raises(InsufficientStock):
        sales_service.record_sale([
            {"product_id": product.id, "quantity": 3},
            {"product_id": second_product.id, "quantity": 5},
        ])

    assert stock_of(product.id) == 10
    assert stock_of(second_product.id) == 4
    assert db_session.query(Sale).count() == 0
    assert db_session.query(StockMovement).count() == 0


def test_sale_validates_lines(db_session, open_session, product):
    with pytest.raises(ValidationError):
        sales_service.record_sale([])
    with pytest.raises(InvalidQuantity):
        sales_service.record_sale([{"product_id": product.id, "quantity": 0}])


def test_list_session_sales(db_session, open_session, product):
    first = sales_service.record_sale([{"product_id": product.id, "quantity": 1}])
    second = sales_service.record_sale([{"product_id": product.id, "quantity": 1}])

    assert [s.id for s in sales_service.list_session_sales(open_session.id)] == [first.id, second.id]
