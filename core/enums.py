from enum import Enum


class OrderStatus(str, Enum):
    PENDING_VENDOR = "PENDING_VENDOR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    # Declared by the order store but never entered; couriers are assigned straight from APPROVED.
    AWAITING_COURIER = "AWAITING_COURIER"
    EN_ROUTE = "EN_ROUTE"
    DELIVERED = "DELIVERED"


class OrderAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    DELIVER = "deliver"


class CourierStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Role(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    COURIER = "courier"
    ADMIN = "admin"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
