# Overview: Service-layer operations for providers (suppliers).

"""
Provider Service

Providers are read-only inputs to purchase orders. Creation exists for
seeding; every order must reference an existing, active provider.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Provider
from ..validation import clean_text


def create_provider(
    *,
    razon_social: str,
    ruc: str,
    contact_name: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    address: str | None = None,
) -> Provider:
    """
    Create a provider.

    Raises:
        ValidationError: missing name/RUC or duplicate RUC
    """
    razon_social = clean_text(razon_social, max_length=255)
    if not razon_social:
        raise ValidationError("razon_social is required")

    ruc = clean_text(ruc, max_length=20)
    if not ruc:
        raise ValidationError("ruc is required")
    if not ruc.isdigit():
        raise ValidationError("ruc must contain only digits")

    existing = db.session.query(Provider).filter_by(ruc=ruc).first()
    if existing:
        raise ValidationError(f"Provider with RUC {ruc} already exists")

    provider = Provider(
        razon_social=razon_social,
        ruc=ruc,
        contact_name=clean_text(contact_name, max_length=128),
        phone=clean_text(phone, max_length=32),
        email=clean_text(email, max_length=255),
        address=clean_text(address, max_length=255),
        is_active=True,
    )
    db.session.add(provider)
    db.session.commit()
    return provider


def get_provider(provider_id: int) -> Provider:
    provider = db.session.get(Provider, provider_id)
    if provider is None:
        raise NotFoundError(f"Provider {provider_id} not found", details={"provider_id": provider_id})
    return provider


def require_active_provider(provider_id: int) -> Provider:
    provider = get_provider(provider_id)
    if not provider.is_active:
        raise ValidationError("Provider is inactive", details={"provider_id": provider_id})
    return provider


def list_providers(include_inactive: bool = False) -> list[Provider]:
    query = db.session.query(Provider)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Provider.razon_social).all()
