"""
Product model.

Catalog entry; only the fields the commission engine reads.
"""

from decimal import Decimal

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_ledger.models.base import Base
from mlm_ledger.models.types import MoneyType, PointsType


class Product(Base):
    """Product entity (productos)."""

    __tablename__ = "productos"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column("nombre", String(255), nullable=False)
    client_price: Mapped[Decimal | None] = mapped_column(
        "precioCliente", MoneyType, nullable=True
    )
    distributor_price: Mapped[Decimal | None] = mapped_column(
        "precioDistribuidor", MoneyType, nullable=True
    )
    points: Mapped[Decimal] = mapped_column(
        "puntos", PointsType, default=Decimal("0"), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, nombre={self.name!r})>"

    @property
    def price_difference(self) -> Decimal:
        """Client price minus distributor price, never negative."""
        if self.client_price is None or self.distributor_price is None:
            return Decimal("0")
        return max(self.client_price - self.distributor_price, Decimal("0"))
