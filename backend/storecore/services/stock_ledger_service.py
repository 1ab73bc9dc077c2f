# Overview: Stock Ledger; the only code path that changes Product.stock_quantity.

"""
Stock Ledger Invariants (authoritative)

- Product.stock_quantity is the single source of truth for on-hand quantity.
- apply_delta is the only writer. Adjustments, order receipts and sales all
  route through it.
- stock_quantity >= 0 always. A delta that would make it negative raises
  InsufficientStock before anything is written.
- Read-modify-write is serialized per product: the row is read with
  SELECT ... FOR UPDATE and written with a version_id compare-and-swap.
  Lock/version conflicts are retried; domain errors are not.
- Every change appends one StockMovement row (previous/new stock) in the
  same transaction as the change.
- Stock is always re-read from the store; nothing is cached across calls.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import InsufficientStock, NotFoundError, PersistenceError, ValidationError
from ..models import Product, StockMovement
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


SOURCE_ADJUSTMENT = "ADJUSTMENT"
SOURCE_ORDER_RECEIPT = "ORDER_RECEIPT"
SOURCE_SALE = "SALE"

SOURCES = {SOURCE_ADJUSTMENT, SOURCE_ORDER_RECEIPT, SOURCE_SALE}


@dataclass(frozen=True)
class StockChange:
    """Result of one applied delta."""
    product_id: int
    quantity_delta: int
    previous_stock: int
    new_stock: int
    movement_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "movement_id": self.movement_id,
        }


def _validate_delta(signed_delta) -> int:
    if isinstance(signed_delta, bool) or not isinstance(signed_delta, int):
        raise ValidationError("signed_delta must be an integer")
    if signed_delta == 0:
        raise ValidationError("signed_delta must be non-zero")
    return signed_delta


def _lock_product(product_id: int) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    # populate_existing: never trust a copy already in the identity map
    product = lock_for_update(query).populate_existing().first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _apply_delta_inner(
    *,
    product_id: int,
    signed_delta: int,
    source: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> StockChange:
    """Core read-modify-write without retry or commit. Caller owns the transaction."""
    delta = _validate_delta(signed_delta)
    if source not in SOURCES:
        raise ValidationError(f"Invalid stock source. Must be one of: {', '.join(sorted(SOURCES))}")

    product = _lock_product(product_id)

    previous = product.stock_quantity
    new_stock = previous + delta
    if new_stock < 0:
        raise InsufficientStock(
            f"Insufficient stock for product {product_id}: on hand {previous}, requested {delta}",
            details={
                "product_id": product_id,
                "current_stock": previous,
                "requested_delta": delta,
            },
        )

    product.stock_quantity = new_stock

    movement = StockMovement(
        product_id=product_id,
        source=source,
        quantity_delta=delta,
        previous_stock=previous,
        new_stock=new_stock,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_user_id=actor_user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)

    # Flush issues UPDATE ... WHERE version_id = :old; a concurrent writer
    # surfaces here as StaleDataError.
    db.session.flush()

    return StockChange(
        product_id=product_id,
        quantity_delta=delta,
        previous_stock=previous,
        new_stock=new_stock,
        movement_id=movement.id,
    )


def apply_delta(
    product_id: int,
    signed_delta: int,
    *,
    source: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
    commit: bool = True,
) -> StockChange:
    """
    Apply a signed stock delta to one product.

    commit=True: runs as its own unit of work with retry and commits.
    commit=False: joins the caller's transaction (flush only). The caller
    commits or rolls back, and retries the whole unit on conflict.

    Raises:
        ValidationError: delta is zero or not an integer
        NotFoundError: product does not exist
        InsufficientStock: result would be negative (nothing written)
        PersistenceError: backing store failed after retries
    """
    kwargs = dict(
        product_id=product_id,
        signed_delta=signed_delta,
        source=source,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_user_id=actor_user_id,
        note=note,
    )

    if not commit:
        return _apply_delta_inner(**kwargs)

    def _op():
        change = _apply_delta_inner(**kwargs)
        db.session.commit()
        return change

    try:
        return run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to update stock for product {product_id}") from exc


def get_stock(product_id: int) -> int:
    """Fresh read of the on-hand quantity."""
    value = db.session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()
    if value is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return int(value)


def list_movements(product_id: int, limit: int = 200) -> list[StockMovement]:
    if db.session.query(Product.id).filter(Product.id == product_id).scalar() is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    return db.session.query(StockMovement).filter_by(
        product_id=product_id,
    ).order_by(
        StockMovement.occurred_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()
