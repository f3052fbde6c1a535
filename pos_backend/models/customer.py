"""Customer model."""
from decimal import Decimal
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos_backend.database import Base


class Customer(Base):
    """Customer (cliente). Required to carry a credit balance."""

    __tablename__ = 'customer'

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    sales = relationship('Sale', back_populates='customer')

    @property
    def balance(self):
        """Outstanding credit across all of the customer's sales."""
        return sum((sale.balance for sale in self.sales), Decimal('0.00'))

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
