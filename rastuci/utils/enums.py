from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PROCESSED = "PROCESSED"
    DELIVERED = "DELIVERED"


class PaymentMethod(str, Enum):
    MERCADOPAGO = "mercadopago"
    CASH = "cash"
    TRANSFER = "transfer"


class StockChange(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    SET = "SET"
