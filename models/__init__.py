from models.orders import Order
from models.order_items import OrderItem
from models.locations import Location

__all__ = ["Order", "OrderItem", "Location"]
