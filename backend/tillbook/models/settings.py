from __future__ import annotations

from ..extensions import db
from ..money import dec_str
from tillbook.time_utils import to_utc_z


# Currency code -> (symbol, decimals)
CURRENCIES = {
    "XOF": ("F CFA", 0),
    "USD": ("$", 2),
    "EUR": ("€", 2),
    "GBP": ("£", 2),
    "JPY": ("¥", 0),
    "CAD": ("C$", 2),
    "AUD": ("A$", 2),
}

LANGUAGES = ("fr", "en")


class ShopSettings(db.Model):
    """
    Shop-wide settings edited from the back office.

    Single row. tax_rate is a fraction (0.18 == 18%).
    """
    __tablename__ = "shop_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    company_name = db.Column(db.String(255), nullable=False, default="Tillbook")
    company_address = db.Column(db.String(255), nullable=True)
    company_phone = db.Column(db.String(32), nullable=True)
    company_email = db.Column(db.String(255), nullable=True)

    currency = db.Column(db.String(8), nullable=False, default="XOF")
    language = db.Column(db.String(8), nullable=False, default="fr")
    tax_rate = db.Column(db.Numeric(6, 4), nullable=False, default=0)
    receipt_footer = db.Column(db.String(255), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "company_name": self.company_name,
            "company_address": self.company_address,
            "company_phone": self.company_phone,
            "company_email": self.company_email,
            "currency": self.currency,
            "language": self.language,
            "tax_rate": dec_str(self.tax_rate),
            "receipt_footer": self.receipt_footer,
            "updated_at": to_utc_z(self.updated_at),
        }
