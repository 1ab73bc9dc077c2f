from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STOCK_STATE_NORMAL = "normal"
STOCK_STATE_LOW = "low"
STOCK_STATE_ZERO = "zero"


class Product(db.Model):
    """
    Product master data with its on-hand stock.

    stock_quantity is the single source of truth for on-hand quantity.
    It is written ONLY through stock_ledger_service.apply_delta; creation
    sets the initial value.

    version_id makes every stock write a compare-and-swap on the row, so
    a concurrent writer that read an older version gets StaleDataError
    instead of silently losing an update.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("stock_minimum >= 0", name="ck_products_stock_minimum_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit_of_measure = db.Column(db.String(32), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    stock_minimum = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def stock_state(self) -> str:
        if self.stock_quantity == 0:
            return STOCK_STATE_ZERO
        if self.stock_quantity < (self.stock_minimum or 0):
            return STOCK_STATE_LOW
        return STOCK_STATE_NORMAL

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit_of_measure": self.unit_of_measure,
            "price_cents": self.price_cents,
            "stock_quantity": self.stock_quantity,
            "stock_minimum": self.stock_minimum,
            "stock_state": self.stock_state,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every stock change made by the ledger.

    SOURCES:
    - ADJUSTMENT: manual inventory adjustment
    - ORDER_RECEIPT: purchase order line received
    - SALE: point-of-sale line

    previous_stock/new_stock are captured under the product row lock and
    are never updated afterwards.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    source = db.Column(db.String(32), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    actor_user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "source": self.source,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
