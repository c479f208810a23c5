# Overview: Shop settings (tax rate, currency, receipt header/footer).

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import ShopSettings, CURRENCIES, LANGUAGES
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_name",
        "company_address",
        "company_phone",
        "company_email",
        "currency",
        "language",
        "tax_rate",
        "receipt_footer",
    },
)


def get_settings() -> ShopSettings:
    """Return the settings row, creating the defaults on first use."""
    settings = db.session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
    if settings is None:
        settings = ShopSettings(
            company_name="Tillbook",
            currency="XOF",
            language="fr",
            tax_rate=Decimal("0"),
            receipt_footer="Merci pour votre achat!",
        )
        db.session.add(settings)
        db.session.commit()
    return settings


def get_tax_rate() -> Decimal:
    return get_settings().tax_rate or Decimal("0")


def update_settings(data: dict) -> ShopSettings:
    patch = validate_payload(model=ShopSettings, payload=data, policy=SETTINGS_POLICY, partial=True)

    if "tax_rate" in patch:
        rate = patch["tax_rate"]
        if rate is None or rate < 0:
            raise ValidationError("tax_rate must be >= 0")
        if rate > 1:
            raise ValidationError("tax_rate is a fraction and must be <= 1")
    if "currency" in patch and patch["currency"] not in CURRENCIES:
        raise ValidationError(f"Unsupported currency: {patch['currency']}")
    if "language" in patch and patch["language"] not in LANGUAGES:
        raise ValidationError(f"Unsupported language: {patch['language']}")

    settings = get_settings()
    for key, value in patch.items():
        setattr(settings, key, value)
    db.session.commit()
    return settings
