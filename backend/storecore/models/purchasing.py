from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Provider(db.Model):
    """Supplier identity. Read-only input to purchase orders."""
    __tablename__ = "providers"
    __table_args__ = (
        db.UniqueConstraint("ruc", name="uq_providers_ruc"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    razon_social = db.Column(db.String(255), nullable=False)
    ruc = db.Column(db.String(20), nullable=False)

    contact_name = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "razon_social": self.razon_social,
            "ruc": self.ruc,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class OrderBuy(db.Model):
    """
    Purchase order placed with a provider.

    LIFECYCLE:
    - pendiente: created, stock untouched
    - recibida: every line applied to stock (terminal)
    - cancelada: cancelled without stock effect (terminal)

    subtotal/igv/total are computed once at creation and never recomputed.
    """
    __tablename__ = "order_buys"
    __table_args__ = (
        db.Index("ix_order_buys_estado_fecha", "estado", "fecha_orden"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False, index=True)

    estado = db.Column(db.String(16), nullable=False, default="pendiente", index=True)

    fecha_orden = db.Column(db.DateTime(timezone=True), nullable=False)
    fecha_entrega = db.Column(db.DateTime(timezone=True), nullable=True)  # estimated
    fecha_entrega_real = db.Column(db.DateTime(timezone=True), nullable=True)  # set on receipt

    igv_percent = db.Column(db.Numeric(5, 2), nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    igv_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    observaciones = db.Column(db.Text, nullable=True)

    cancellation_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    received_by_user_id = db.Column(db.Integer, nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    provider = db.relationship("Provider", backref=db.backref("order_buys", lazy=True))
    lines = db.relationship(
        "DetailOrderBuy",
        back_populates="order",
        order_by="DetailOrderBuy.line_number",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        result = {
            "id": self.id,
            "provider_id": self.provider_id,
            "provider": self.provider.to_dict() if self.provider else None,
            "estado": self.estado,
            "fecha_orden": to_utc_z(self.fecha_orden),
            "fecha_entrega": to_utc_z(self.fecha_entrega),
            "fecha_entrega_real": to_utc_z(self.fecha_entrega_real),
            "igv_percent": str(self.igv_percent),
            "subtotal_cents": self.subtotal_cents,
            "igv_cents": self.igv_cents,
            "total_cents": self.total_cents,
            "observaciones": self.observaciones,
            "cancellation_reason": self.cancellation_reason,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_by_user_id": self.created_by_user_id,
            "received_by_user_id": self.received_by_user_id,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "version_id": self.version_id,
        }
        if include_lines:
            result["lines"] = [line.to_dict() for line in self.lines]
        return result


class DetailOrderBuy(db.Model):
    """Purchase order line. Lines are applied to stock in line_number order."""
    __tablename__ = "detail_order_buys"
    __table_args__ = (
        db.UniqueConstraint("order_buy_id", "line_number", name="uq_detail_order_buys_order_line"),
        db.CheckConstraint("cantidad > 0", name="ck_detail_order_buys_cantidad_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_buy_id = db.Column(db.Integer, db.ForeignKey("order_buys.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    cantidad = db.Column(db.Integer, nullable=False)
    precio_unitario_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    # Set in the same transaction as the line's stock increment; a retried
    # receipt skips lines that already carry it.
    applied_at = db.Column(db.DateTime(timezone=True), nullable=True)
    stock_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    # Compare-and-swap on applied_at: two receipts racing on the same line
    # cannot both commit an increment for it.
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    order = db.relationship("OrderBuy", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_buy_id": self.order_buy_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "cantidad": self.cantidad,
            "precio_unitario_cents": self.precio_unitario_cents,
            "subtotal_cents": self.subtotal_cents,
            "applied_at": to_utc_z(self.applied_at),
            "stock_movement_id": self.stock_movement_id,
        }
