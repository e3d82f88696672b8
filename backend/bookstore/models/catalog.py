from __future__ import annotations

from ..extensions import db
from ..money import format_money
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog item (a book, or anything else sold over the counter).

    cost_price is the unit cost of the most recent purchase receipt
    (last-received-price-wins); no cost history is kept on the product.

    LOOKUP PATTERN:
    - Barcode scan: Product.query.filter_by(barcode=X, is_active=True)
    - ISBN search falls back to the same lookup helper
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    # Second display name (e.g. the title in the shop's local language)
    alt_name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    isbn = db.Column(db.String(32), nullable=True, index=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("authors.id"), nullable=True, index=True)

    cost_price = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    author = db.relationship("Author", backref=db.backref("products", lazy=True))
    prices = db.relationship(
        "ProductPrice",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductPrice.currency_id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def price_for(self, currency_id: int):
        """Listed sell price in the given currency, or None when none is configured."""
        for price in self.prices:
            if price.currency_id == currency_id:
                return price.price
        return None

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "alt_name": self.alt_name,
            "isbn": self.isbn,
            "barcode": self.barcode,
            "author": self.author.to_dict() if self.author else None,
        }

    def to_dict(self, *, include_stock: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "alt_name": self.alt_name,
            "description": self.description,
            "isbn": self.isbn,
            "barcode": self.barcode,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "author_id": self.author_id,
            "author": self.author.to_dict() if self.author else None,
            "cost_price": format_money(self.cost_price),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "prices": [p.to_dict() for p in self.prices],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_stock:
            data["stocks"] = [s.to_dict() for s in self.stocks]
        return data


class ProductPrice(db.Model):
    """Sell price of one product in one currency. Replaced wholesale on edit."""
    __tablename__ = "product_prices"
    __table_args__ = (
        db.UniqueConstraint("product_id", "currency_id", name="uq_product_prices_product_currency"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False, index=True)
    price = db.Column(db.Numeric(18, 2), nullable=False)

    product = db.relationship("Product", back_populates="prices")
    currency = db.relationship("Currency")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "currency_id": self.currency_id,
            "currency": self.currency.to_dict() if self.currency else None,
            "price": format_money(self.price),
        }
