#app/data/models/product.py
from sqlalchemy import Column, String, Numeric, Boolean

from app.data.database import Base


class ProductModel(Base):
    """Wiersz katalogu - tylko do odczytu w checkout."""

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    weight = Column(String, nullable=False, default="")
    in_stock = Column(Boolean, nullable=False, default=True)
