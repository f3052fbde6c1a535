"""Stock Move model."""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text, Enum, ForeignKey
from sqlalchemy.sql import func
from pos_backend.database import Base
import enum


class StockMoveType(enum.Enum):
    """Stock move type enum."""
    SALE = "SALE"
    REVERSAL = "REVERSAL"
    ADJUSTMENT = "ADJUSTMENT"
    RECEIPT = "RECEIPT"


class StockMove(Base):
    """Append-only record of one change to a product's on-hand quantity."""

    __tablename__ = 'stock_move'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    product_id = Column(String(64), ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    move_type = Column(Enum(StockMoveType, name='stock_move_type'), nullable=False)
    qty_delta = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    reference_id = Column(String(64), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<StockMove(id={self.id}, type={self.move_type.value}, delta={self.qty_delta})>"
