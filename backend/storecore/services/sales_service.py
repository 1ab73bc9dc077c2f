"""
Sales Service - point-of-sale sales recorded under the open cash session

WHY: Sales are the third stock mutation source and the amounts a cash
session reconciles against at close.

A sale is all-or-nothing: every line goes through the Stock Ledger inside
one transaction; any line short on stock aborts the whole sale.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import InvalidSessionState, NotFoundError, PersistenceError, ValidationError
from ..models import CashSession, Product, Sale, SaleLine
from ..time_utils import utcnow
from ..validation import clean_text, coerce_int, non_negative_cents, positive_int
from . import stock_ledger_service
from .concurrency import lock_for_update, run_with_retry


def _validate_lines(lines) -> list[dict]:
    if not lines or not isinstance(lines, (list, tuple)):
        raise ValidationError("Sale must have at least one line")

    cleaned = []
    for index, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {index} must be an object")
        price = raw.get("unit_price_cents")
        cleaned.append({
            "product_id": coerce_int(raw.get("product_id"), f"line {index} product_id"),
            "quantity": positive_int(raw.get("quantity"), f"line {index} quantity"),
            "unit_price_cents": (
                non_negative_cents(price, f"line {index} unit_price_cents") if price is not None else None
            ),
        })
    return cleaned


def record_sale(
    lines: list[dict],
    payment_method: str | None = None,
    *,
    operator_user_id: int | None = None,
) -> Sale:
    """
    Record a sale under the currently open cash session.

    Args:
        lines: [{product_id, quantity, unit_price_cents?}, ...]; price
            defaults to the product's price_cents
        payment_method: Free-form tender label (cash, card, ...)

    Raises:
        ValidationError / InvalidQuantity: bad lines
        InvalidSessionState: no open cash session
        NotFoundError: product missing
        InsufficientStock: a line exceeds on-hand (nothing written)
    """
    cleaned = _validate_lines(lines)
    payment_method = clean_text(payment_method, max_length=32)

    def _op():
        session = lock_for_update(
            db.session.query(CashSession).filter_by(status="open")
        ).populate_existing().first()
        if session is None:
            raise InvalidSessionState("No open cash session; open the drawer before selling")

        # Version bump on the session: a close committed meanwhile fails this
        # sale, and a close still in flight recounts after it
        session.last_sale_at = utcnow()

        # Resolve prices before touching stock
        priced = []
        for line in cleaned:
            product = db.session.get(Product, line["product_id"])
            if product is None:
                raise NotFoundError(f"Product {line['product_id']} not found")
            unit_price = line["unit_price_cents"]
            if unit_price is None:
                unit_price = product.price_cents
            if unit_price is None:
                raise ValidationError(f"Product {product.id} has no price")
            priced.append((line["product_id"], line["quantity"], unit_price))

        sale = Sale(
            cash_session_id=session.id,
            total_cents=0,
            payment_method=payment_method,
            operator_user_id=operator_user_id,
            created_at=utcnow(),
        )
        db.session.add(sale)
        db.session.flush()

        total = 0
        for product_id, quantity, unit_price in priced:
            change = stock_ledger_service.apply_delta(
                product_id,
                -quantity,
                source=stock_ledger_service.SOURCE_SALE,
                reference_type="sale",
                reference_id=sale.id,
                actor_user_id=operator_user_id,
                commit=False,
            )
            line_total = quantity * unit_price
            db.session.add(SaleLine(
                sale_id=sale.id,
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=unit_price,
                line_total_cents=line_total,
                stock_movement_id=change.movement_id,
            ))
            total += line_total

        sale.total_cents = total
        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to record sale") from exc

    current_app.logger.info(
        "Sale %s recorded in cash session %s: total_cents=%s",
        sale.id, sale.cash_session_id, sale.total_cents,
    )
    return sale


def list_session_sales(session_id: int) -> list[Sale]:
    """Get all sales for a session."""
    if db.session.get(CashSession, session_id) is None:
        raise NotFoundError(f"Cash session {session_id} not found")
    return db.session.query(Sale).filter_by(
        cash_session_id=session_id
    ).order_by(Sale.created_at, Sale.id).all()
