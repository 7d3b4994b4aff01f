from core.database import Base
from core.enums import OrderStatus
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, String, Numeric, Enum)
from .mixins import UUIDPrimaryKeyMixin, CreatedAtMixin, UpdatedAtMixin

class Order(Base, UUIDPrimaryKeyMixin, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "orders"

    # references owned by the auth/vendor/courier services
    customer_id = Column(String(36), nullable=False, index=True)
    vendor_id = Column(String(36), nullable=False, index=True)
    courier_id = Column(String(36), nullable=True, index=True)

    #relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin"
    )

    status = Column(
        Enum(*[s.value for s in OrderStatus], name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING_VENDOR.value,
        index=True
    )
    total_price = Column(Numeric(10, 2), nullable=False)
