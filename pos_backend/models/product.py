"""Product model."""
from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos_backend.database import Base


class Product(Base):
    """Catalog entry with on-hand quantity, cost and price."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='product_quantity_non_negative'),
        CheckConstraint('buy_price >= 0', name='product_buy_price_check'),
        CheckConstraint('sell_price >= 0', name='product_sell_price_check'),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    barcode = Column(String(64), unique=True, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    buy_price = Column(Numeric(10, 2), nullable=False, default=0)  # Precio de compra
    sell_price = Column(Numeric(10, 2), nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    expiry_date = Column(Date, nullable=True)
    supplier_id = Column(String(64), ForeignKey('supplier.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    supplier = relationship('Supplier', back_populates='products')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', quantity={self.quantity})>"

    @property
    def is_out_of_stock(self):
        return (self.quantity or 0) == 0

    @property
    def is_low_stock(self):
        return (self.quantity or 0) <= (self.low_stock_threshold or 0)
