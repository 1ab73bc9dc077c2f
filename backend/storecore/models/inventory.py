from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryAdjustment(db.Model):
    """
    Manual stock correction with its reason and before/after snapshot.

    APPEND-ONLY: rows are written once by adjustment_service.adjust and
    never updated or deleted. new_stock == previous_stock +/- quantity and
    equals the product's stock_quantity right after the same commit.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inventory_adjustments_quantity_positive"),
        db.Index("ix_inventory_adjustments_product_date", "product_id", "adjustment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    adjustment_type = db.Column(db.String(16), nullable=False)  # increase, decrease
    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(32), nullable=False, index=True)
    reason_description = db.Column(db.String(500), nullable=True)

    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    adjustment_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, nullable=True)

    stock_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    product = db.relationship("Product", backref=db.backref("inventory_adjustments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "adjustment_type": self.adjustment_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "reason_description": self.reason_description,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "adjustment_date": to_utc_z(self.adjustment_date),
            "actor_user_id": self.actor_user_id,
            "stock_movement_id": self.stock_movement_id,
        }
