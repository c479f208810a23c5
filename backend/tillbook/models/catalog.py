from __future__ import annotations

from ..extensions import db
from ..money import dec_str
from tillbook.time_utils import to_utc_z


# Units of measure offered by the catalog: code -> (symbol, allows fractions)
UNITS_OF_MEASURE = {
    "kg": ("Kg", True),
    "l": ("L", True),
    "cart": ("Cart", False),
    "piece": ("pièce", True),
    "g": ("g", True),
    "ml": ("ml", True),
    "pack": ("pack", False),
    "box": ("boîte", False),
    "bottle": ("bouteille", False),
    "can": ("canette", False),
}


class Product(db.Model):
    """
    Product master data.

    PRICING TIERS:
    - retail_price: always set, the fallback tier
    - wholesale_price + wholesale_min_quantity: applies once the line
      quantity reaches the threshold
    - promotional_price (+ optional promotional_valid_until): wins over
      everything else while not expired

    STOCK: signed. Oversold products keep their negative stock so the
    oversell stays visible to reconciliation; only display clamps at zero.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    unit = db.Column(db.String(16), nullable=False, default="piece")
    allows_fractions = db.Column(db.Boolean, nullable=False, default=True)

    retail_price = db.Column(db.Numeric(14, 2), nullable=False)
    wholesale_price = db.Column(db.Numeric(14, 2), nullable=True)
    wholesale_min_quantity = db.Column(db.Numeric(14, 3), nullable=True)
    promotional_price = db.Column(db.Numeric(14, 2), nullable=True)
    promotional_valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    cost = db.Column(db.Numeric(14, 2), nullable=True)

    stock = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(14, 3), nullable=False, default=0)

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

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    @property
    def unit_symbol(self) -> str:
        return UNITS_OF_MEASURE.get(self.unit, (self.unit, True))[0]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "unit": self.unit,
            "unit_symbol": self.unit_symbol,
            "allows_fractions": self.allows_fractions,
            "retail_price": dec_str(self.retail_price),
            "wholesale_price": dec_str(self.wholesale_price),
            "wholesale_min_quantity": dec_str(self.wholesale_min_quantity),
            "promotional_price": dec_str(self.promotional_price),
            "promotional_valid_until": to_utc_z(self.promotional_valid_until),
            "cost": dec_str(self.cost),
            "stock": dec_str(self.stock),
            "display_stock": dec_str(max(self.stock, 0)) if self.stock is not None else None,
            "min_stock": dec_str(self.min_stock),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
