# Overview: Purchase order (OrderBuy) workflow; drives Stock Ledger increments on receipt.

"""
Purchase Order Service

LIFECYCLE:
1. pendiente: created with its lines, stock untouched
2. recibida: every line applied to stock (terminal)
3. cancelada: cancelled, no stock effect (terminal)

No transition leaves a terminal state.

RECEIPT POLICY:
- Lines are applied sequentially in line_number order, one ledger
  transaction per line. Each line is marked applied in that same
  transaction.
- The first failing line stops the receipt. Lines already applied stay
  applied (no compensating decrement). The order stays pendiente and the
  caller gets PartialReceiptError with the applied/failed breakdown.
- A retried receipt skips lines already marked applied, so stock is
  never incremented twice for the same line.
- Only after every line is applied does the order become recibida and
  fecha_entrega_real get stamped.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import flag_modified

from ..extensions import db
from ..errors import (
    EmptyLineSet,
    InvalidLineQuantity,
    InvalidStateTransition,
    NotFoundError,
    PartialReceiptError,
    PersistenceError,
    StoreCoreError,
    ValidationError,
)
from ..models import DetailOrderBuy, OrderBuy, Product
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import clean_text, coerce_int, percent, positive_int
from . import stock_ledger_service
from .concurrency import lock_for_update, run_with_retry
from .provider_service import require_active_provider


class OrderStatus(str, enum.Enum):
    PENDIENTE = "pendiente"
    RECIBIDA = "recibida"
    CANCELADA = "cancelada"


ALLOWED_TRANSITIONS = {
    OrderStatus.PENDIENTE: {OrderStatus.RECIBIDA, OrderStatus.CANCELADA},
    OrderStatus.RECIBIDA: set(),
    OrderStatus.CANCELADA: set(),
}


def ensure_transition(order: OrderBuy, target: OrderStatus) -> None:
    current = OrderStatus(order.estado)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(
            f"Cannot move order {order.id} from {current.value} to {target.value}",
            details={"order_id": order.id, "estado": current.value, "target": target.value},
        )


@dataclass
class LineFailure:
    line_number: int
    product_id: int
    cantidad: int
    error: str
    code: str

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "product_id": self.product_id,
            "cantidad": self.cantidad,
            "error": self.error,
            "code": self.code,
        }


@dataclass
class AppliedLine:
    line_number: int
    product_id: int
    cantidad: int
    previous_stock: int
    new_stock: int

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "product_id": self.product_id,
            "cantidad": self.cantidad,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
        }


@dataclass
class ReceiptResult:
    """Outcome of a receive() call, complete or partial."""
    order: OrderBuy
    applied: list[AppliedLine] = field(default_factory=list)
    already_applied: list[int] = field(default_factory=list)
    failed: LineFailure | None = None
    not_attempted: list[int] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.failed is None and not self.not_attempted

    @property
    def updated_products(self) -> list[dict]:
        return [line.to_dict() for line in self.applied]

    def to_dict(self) -> dict:
        return {
            "order_id": self.order.id,
            "estado": self.order.estado,
            "completed": self.completed,
            "applied": self.updated_products,
            "already_applied": list(self.already_applied),
            "failed": self.failed.to_dict() if self.failed else None,
            "not_attempted": list(self.not_attempted),
        }


# =============================================================================
# CREATE
# =============================================================================

def _default_igv_percent() -> Decimal:
    return percent(current_app.config.get("DEFAULT_IGV_PERCENT", "18"), "igv_percent")


def _parse_fecha(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError("fecha_entrega must be an ISO-8601 datetime")


def _validate_lines(lines) -> list[dict]:
    if not lines:
        raise EmptyLineSet("Order must have at least one line")
    if not isinstance(lines, (list, tuple)):
        raise ValidationError("lines must be a list")

    cleaned = []
    for index, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {index} must be an object")

        product_id = coerce_int(raw.get("product_id"), f"line {index} product_id")

        cantidad = positive_int(raw.get("cantidad"), f"line {index} cantidad", error_cls=InvalidLineQuantity)
        precio = positive_int(
            raw.get("precio_unitario_cents"),
            f"line {index} precio_unitario_cents",
            error_cls=InvalidLineQuantity,
        )

        cleaned.append({
            "line_number": index,
            "product_id": product_id,
            "cantidad": cantidad,
            "precio_unitario_cents": precio,
            "subtotal_cents": cantidad * precio,
        })
    return cleaned


def compute_totals(subtotal_cents: int, igv_percent: Decimal) -> tuple[int, int]:
    """Return (igv_cents, total_cents); IGV rounded half-up to the cent."""
    igv = (Decimal(subtotal_cents) * igv_percent / Decimal(100)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    igv_cents = int(igv)
    return igv_cents, subtotal_cents + igv_cents


def create(
    provider_id: int,
    lines: list[dict],
    igv_percent=None,
    observaciones: str | None = None,
    *,
    fecha_entrega=None,
    created_by_user_id: int | None = None,
) -> OrderBuy:
    """
    Create a purchase order in pendiente.

    Args:
        provider_id: Supplier (must exist and be active)
        lines: [{product_id, cantidad, precio_unitario_cents}, ...]
        igv_percent: Tax rate; defaults to DEFAULT_IGV_PERCENT
        observaciones: Free text
        fecha_entrega: Estimated delivery (datetime or ISO-8601)

    Raises:
        EmptyLineSet: no lines
        InvalidLineQuantity: cantidad or precio_unitario not > 0
        NotFoundError: provider or product missing
    """
    cleaned = _validate_lines(lines)
    pct = _default_igv_percent() if igv_percent is None else percent(igv_percent, "igv_percent")
    fecha_entrega_dt = _parse_fecha(fecha_entrega)

    require_active_provider(provider_id)

    for line in cleaned:
        product = db.session.get(Product, line["product_id"])
        if product is None:
            raise NotFoundError(
                f"Product {line['product_id']} not found",
                details={"line_number": line["line_number"], "product_id": line["product_id"]},
            )

    subtotal = sum(line["subtotal_cents"] for line in cleaned)
    igv_cents, total_cents = compute_totals(subtotal, pct)

    order = OrderBuy(
        provider_id=provider_id,
        estado=OrderStatus.PENDIENTE.value,
        fecha_orden=utcnow(),
        fecha_entrega=fecha_entrega_dt,
        igv_percent=pct,
        subtotal_cents=subtotal,
        igv_cents=igv_cents,
        total_cents=total_cents,
        observaciones=clean_text(observaciones),
        created_by_user_id=created_by_user_id,
    )
    for line in cleaned:
        order.lines.append(DetailOrderBuy(**line))

    db.session.add(order)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError("Failed to create purchase order") from exc

    current_app.logger.info(
        "Purchase order %s created: provider=%s lines=%s total_cents=%s",
        order.id, provider_id, len(cleaned), total_cents,
    )
    return order


# =============================================================================
# READ
# =============================================================================

def get_order(order_id: int) -> OrderBuy:
    order = db.session.get(OrderBuy, order_id)
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found", details={"order_id": order_id})
    return order


def _lock_order(order_id: int) -> OrderBuy:
    query = db.session.query(OrderBuy).filter_by(id=order_id)
    order = lock_for_update(query).populate_existing().first()
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found", details={"order_id": order_id})
    return order


def list_orders(estado: str | None = None, provider_id: int | None = None) -> list[OrderBuy]:
    query = db.session.query(OrderBuy)
    if estado:
        try:
            estado = OrderStatus(estado).value
        except ValueError:
            raise ValidationError(
                f"Invalid estado. Must be one of: {', '.join(s.value for s in OrderStatus)}"
            )
        query = query.filter(OrderBuy.estado == estado)
    if provider_id:
        query = query.filter(OrderBuy.provider_id == provider_id)
    return query.order_by(OrderBuy.fecha_orden.desc(), OrderBuy.id.desc()).all()


# =============================================================================
# RECEIVE
# =============================================================================

def _apply_line(order_id: int, line_id: int, actor_user_id: int | None):
    """
    Apply one line in its own transaction. Returns None if it was already applied.

    The order is re-locked and its state re-checked inside the transaction.
    The applied_at write is a version compare-and-swap, so a concurrent
    receipt that applied the same line first makes this commit fail with
    StaleDataError; the retry then sees the line (or the order) done.
    """
    def _op():
        order = _lock_order(order_id)
        ensure_transition(order, OrderStatus.RECIBIDA)

        line = lock_for_update(
            db.session.query(DetailOrderBuy).filter_by(id=line_id)
        ).populate_existing().one()
        if line.applied_at is not None:
            return None

        # Version bump on the order: a cancel or receipt committed meanwhile
        # fails this commit
        flag_modified(order, "estado")

        change = stock_ledger_service.apply_delta(
            line.product_id,
            line.cantidad,
            source=stock_ledger_service.SOURCE_ORDER_RECEIPT,
            reference_type="order_buy",
            reference_id=order_id,
            actor_user_id=actor_user_id,
            note=f"Orden de compra {order_id}, línea {line.line_number}",
            commit=False,
        )
        line.applied_at = utcnow()
        line.stock_movement_id = change.movement_id
        db.session.commit()
        return change

    try:
        return run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to apply line {line_id} of order {order_id}") from exc


def receive(order_id: int, *, received_by_user_id: int | None = None) -> ReceiptResult:
    """
    Receive a purchase order: increment stock for every line, then mark it recibida.

    Returns:
        ReceiptResult with per-line before/after stock

    Raises:
        NotFoundError: order missing
        InvalidStateTransition: order is not pendiente
        PartialReceiptError: a line failed; result lists what was applied
    """
    order = get_order(order_id)
    db.session.refresh(order)
    ensure_transition(order, OrderStatus.RECIBIDA)

    plan = [(line.id, line.line_number, line.product_id, line.cantidad) for line in order.lines]
    result = ReceiptResult(order=order)

    for index, (line_id, line_number, product_id, cantidad) in enumerate(plan):
        try:
            change = _apply_line(order_id, line_id, received_by_user_id)
        except InvalidStateTransition:
            # Another receipt or a cancel finished the order first
            raise
        except StoreCoreError as exc:
            result.failed = LineFailure(
                line_number=line_number,
                product_id=product_id,
                cantidad=cantidad,
                error=exc.message,
                code=type(exc).__name__,
            )
            result.not_attempted = [number for _, number, _, _ in plan[index + 1:]]
            break

        if change is None:
            result.already_applied.append(line_number)
        else:
            result.applied.append(AppliedLine(
                line_number=line_number,
                product_id=product_id,
                cantidad=cantidad,
                previous_stock=change.previous_stock,
                new_stock=change.new_stock,
            ))

    if result.failed is not None:
        current_app.logger.warning(
            "Partial receipt of order %s: applied lines %s, failed line %s (%s)",
            order_id,
            [line.line_number for line in result.applied],
            result.failed.line_number,
            result.failed.code,
        )
        raise PartialReceiptError(
            f"Order {order_id} receipt stopped at line {result.failed.line_number}: {result.failed.error}",
            result,
        )

    def _finish():
        locked = _lock_order(order_id)
        ensure_transition(locked, OrderStatus.RECIBIDA)
        locked.estado = OrderStatus.RECIBIDA.value
        locked.fecha_entrega_real = utcnow()
        locked.received_by_user_id = received_by_user_id
        db.session.commit()
        return locked

    try:
        result.order = run_with_retry(_finish)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to mark order {order_id} as received") from exc

    current_app.logger.info(
        "Purchase order %s received: %s lines applied, %s already applied",
        order_id, len(result.applied), len(result.already_applied),
    )
    return result


# =============================================================================
# CANCEL
# =============================================================================

def cancel(
    order_id: int,
    motivo: str | None = None,
    *,
    cancelled_by_user_id: int | None = None,
) -> OrderBuy:
    """
    Cancel a pendiente order. No stock is touched.

    Raises:
        NotFoundError: order missing
        InvalidStateTransition: order is recibida or cancelada
    """
    motivo = clean_text(motivo, max_length=255)

    def _op():
        order = _lock_order(order_id)
        ensure_transition(order, OrderStatus.CANCELADA)
        order.estado = OrderStatus.CANCELADA.value
        order.cancellation_reason = motivo
        order.cancelled_at = utcnow()
        order.cancelled_by_user_id = cancelled_by_user_id
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to cancel order {order_id}") from exc

    applied = [line.line_number for line in order.lines if line.applied_at is not None]
    if applied:
        current_app.logger.warning(
            "Purchase order %s cancelled after partial receipt; lines %s remain in stock",
            order_id, applied,
        )
    else:
        current_app.logger.info("Purchase order %s cancelled", order_id)
    return order
