# Overview: Service-layer operations for manual inventory adjustments.

"""
Inventory Adjustment Service

WHY: Stock drifts from reality (shrinkage, damage, physical counts,
returns, data-entry mistakes). Adjustments correct it with a reason and
leave an append-only audit trail.

ATOMICITY: the ledger change and the adjustment row are flushed in one
transaction and committed together. If the ledger rejects the delta
(InsufficientStock) nothing is written: no stock change, no audit row.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import InvalidReason, NotFoundError, PersistenceError, ValidationError
from ..models import InventoryAdjustment, StockMovement
from ..time_utils import utcnow
from ..validation import clean_text, positive_int
from . import stock_ledger_service
from .concurrency import run_with_retry


TYPE_INCREASE = "increase"
TYPE_DECREASE = "decrease"
ADJUSTMENT_TYPES = (TYPE_INCREASE, TYPE_DECREASE)

# Reason codes as stored; labels for display
REASON_LABELS = {
    "merma": "Merma",
    "conteo": "Conteo",
    "daño": "Daño",
    "devolucion": "Devolución",
    "correccion": "Corrección",
    "otro": "Otro",
}
REASON_DESCRIPTIONS = {
    "merma": "Pérdida de producto (vencimiento, deterioro)",
    "conteo": "Ajuste por conteo físico",
    "daño": "Producto dañado",
    "devolucion": "Devolución de producto",
    "correccion": "Corrección de error",
    "otro": "Otro motivo",
}
REASONS = tuple(REASON_LABELS)


def _validate_type(adjustment_type) -> str:
    value = str(adjustment_type or "").strip().lower()
    if value not in ADJUSTMENT_TYPES:
        raise ValidationError(
            f"Invalid adjustment_type. Must be one of: {', '.join(ADJUSTMENT_TYPES)}"
        )
    return value


def _validate_reason(reason) -> str:
    value = str(reason or "").strip().lower()
    if value not in REASON_LABELS:
        raise InvalidReason(
            f"Invalid reason. Must be one of: {', '.join(REASONS)}",
            details={"reason": reason},
        )
    return value


def adjust(
    product_id: int,
    adjustment_type: str,
    quantity: int,
    reason: str,
    reason_description: str | None = None,
    *,
    actor_user_id: int | None = None,
) -> InventoryAdjustment:
    """
    Record a manual stock correction.

    Args:
        product_id: Product to adjust
        adjustment_type: "increase" or "decrease"
        quantity: Positive number of units
        reason: One of REASONS
        reason_description: Optional free text (trimmed; blank is dropped)
        actor_user_id: Operator, when known

    Returns:
        The persisted InventoryAdjustment with previous_stock/new_stock

    Raises:
        ValidationError / InvalidQuantity / InvalidReason: bad input
        NotFoundError: product does not exist
        InsufficientStock: decrease below zero (nothing written)
    """
    # Validate everything before touching the store
    adjustment_type = _validate_type(adjustment_type)
    quantity = positive_int(quantity, "quantity")
    reason = _validate_reason(reason)
    reason_description = clean_text(reason_description, max_length=500)

    signed_delta = quantity if adjustment_type == TYPE_INCREASE else -quantity

    def _op():
        change = stock_ledger_service.apply_delta(
            product_id,
            signed_delta,
            source=stock_ledger_service.SOURCE_ADJUSTMENT,
            reference_type="inventory_adjustment",
            actor_user_id=actor_user_id,
            note=f"{REASON_LABELS[reason]}" + (f": {reason_description}" if reason_description else ""),
            commit=False,
        )

        adjustment = InventoryAdjustment(
            product_id=product_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            reason=reason,
            reason_description=reason_description,
            previous_stock=change.previous_stock,
            new_stock=change.new_stock,
            adjustment_date=utcnow(),
            actor_user_id=actor_user_id,
            stock_movement_id=change.movement_id,
        )
        db.session.add(adjustment)
        db.session.flush()

        # Back-link the ledger row now that the adjustment has an id
        if change.movement_id is not None:
            movement = db.session.get(StockMovement, change.movement_id)
            movement.reference_id = adjustment.id

        db.session.commit()
        return adjustment

    try:
        adjustment = run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to record adjustment for product {product_id}") from exc

    current_app.logger.info(
        "Inventory adjustment %s: product=%s %s %s (%s) stock %s -> %s",
        adjustment.id,
        product_id,
        adjustment_type,
        quantity,
        reason,
        adjustment.previous_stock,
        adjustment.new_stock,
    )
    return adjustment


def get_adjustment(adjustment_id: int) -> InventoryAdjustment:
    adjustment = db.session.get(InventoryAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFoundError(f"Inventory adjustment {adjustment_id} not found")
    return adjustment


def history(product_id: int) -> list[InventoryAdjustment]:
    """Adjustments for one product, newest first. Empty list when none."""
    return db.session.query(InventoryAdjustment).filter_by(
        product_id=product_id,
    ).order_by(
        InventoryAdjustment.adjustment_date.desc(),
        InventoryAdjustment.id.desc(),
    ).all()


def list_all(limit: int | None = None) -> list[InventoryAdjustment]:
    """Global adjustment ledger, newest first."""
    query = db.session.query(InventoryAdjustment).order_by(
        InventoryAdjustment.adjustment_date.desc(),
        InventoryAdjustment.id.desc(),
    )
    if limit:
        query = query.limit(limit)
    return query.all()

