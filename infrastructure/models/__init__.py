"""Infrastructure models package exports."""
from .base import Base, metadata
from .voucher import VoucherModel
from .product import ProductModel, ProductVariantModel, ProductReviewModel
from .order import OrderModel, OrderItemModel
from .payment import PaymentHistoryModel

__all__ = [
    "Base",
    "metadata",
    "VoucherModel",
    "ProductModel",
    "ProductVariantModel",
    "ProductReviewModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentHistoryModel",
]
