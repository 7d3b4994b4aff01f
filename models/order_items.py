from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, CheckConstraint)
from sqlalchemy.orm import relationship
from .mixins import UUIDPrimaryKeyMixin

class OrderItem(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_order_items_price_non_negative"),
    )

    #fk
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    order = relationship("Order", back_populates="items")

    product_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False)
    # snapshot of the product price when the order was placed
    price = Column(Numeric(10, 2), nullable=False)
