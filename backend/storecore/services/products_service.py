# Overview: Product seeding and stock read views (low-stock signaling).

"""
Products Service

Master-data CRUD lives outside this core. This module only creates
products (initial stock is a creation value, not a ledger mutation) and
exposes read views over stock state.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Product
from ..validation import clean_text, coerce_int, non_negative_cents


def create_product(
    *,
    sku: str,
    name: str,
    price_cents: int | None = None,
    stock_quantity: int = 0,
    stock_minimum: int = 0,
    unit_of_measure: str | None = None,
) -> Product:
    sku = clean_text(sku, max_length=64)
    name = clean_text(name, max_length=255)
    if not sku or not name:
        raise ValidationError("sku and name are required")

    stock_quantity = coerce_int(stock_quantity, "stock_quantity")
    stock_minimum = coerce_int(stock_minimum, "stock_minimum")
    if stock_quantity < 0:
        raise ValidationError("stock_quantity must be >= 0")
    if stock_minimum < 0:
        raise ValidationError("stock_minimum must be >= 0")
    if price_cents is not None:
        price_cents = non_negative_cents(price_cents, "price_cents", error_cls=ValidationError)

    if db.session.query(Product.id).filter_by(sku=sku).first():
        raise ValidationError(f"SKU {sku} already exists")

    product = Product(
        sku=sku,
        name=name,
        price_cents=price_cents,
        stock_quantity=stock_quantity,
        stock_minimum=stock_minimum,
        unit_of_measure=clean_text(unit_of_measure, max_length=32),
        is_active=True,
    )
    db.session.add(product)
    db.session.commit()
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Product.name, Product.id).all()


def list_low_stock() -> list[Product]:
    """Active products at zero or below their minimum, lowest stock first."""
    return db.session.query(Product).filter(
        Product.is_active.is_(True),
        or_(Product.stock_quantity == 0, Product.stock_quantity < Product.stock_minimum),
    ).order_by(Product.stock_quantity, Product.name).all()


def stock_state(product: Product) -> str:
    """zero, low or normal; see Product.stock_state."""
    return product.stock_state
