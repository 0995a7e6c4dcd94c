"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


# --- Not found -------------------------------------------------------------


class OrderNotFoundException(BusinessException):
    """Raised for missing orders and for orders owned by someone else."""

    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details=details,
        )


class ProductNotFoundException(BusinessException):
    def __init__(self, product_id: int):
        super().__init__(
            code=BusinessCode.PRODUCT_NOT_FOUND,
            message=f"Product with ID {product_id} not found",
            error_type="ProductNotFound",
            details={"product_id": product_id},
            field="items",
        )


class VariantNotFoundException(BusinessException):
    def __init__(self, product_id: int, variant_id: int):
        super().__init__(
            code=BusinessCode.VARIANT_NOT_FOUND,
            message=f"Variant with ID {variant_id} not found on product {product_id}",
            error_type="VariantNotFound",
            details={"product_id": product_id, "variant_id": variant_id},
            field="items",
        )


class VoucherNotFoundException(BusinessException):
    def __init__(self, code: Optional[str] = None, *, voucher_id: Optional[int] = None):
        details = {}
        if code is not None:
            details["code"] = code
        if voucher_id is not None:
            details["voucher_id"] = voucher_id
        super().__init__(
            code=BusinessCode.VOUCHER_NOT_FOUND,
            message="Voucher not found",
            error_type="VoucherNotFound",
            details=details or None,
            field="voucher_code",
        )


class PaymentRecordNotFoundException(BusinessException):
    def __init__(self, order_id: int, transaction_id: str):
        super().__init__(
            code=BusinessCode.PAYMENT_RECORD_NOT_FOUND,
            message="Payment record not found",
            error_type="PaymentRecordNotFound",
            details={"order_id": order_id, "transaction_id": transaction_id},
        )


# --- Business rule violations ----------------------------------------------


class InsufficientStockException(BusinessException):
    def __init__(
        self,
        product_name: str,
        *,
        product_id: int,
        variant_id: Optional[int] = None,
        requested: int,
        available: int,
    ):
        super().__init__(
            code=BusinessCode.INSUFFICIENT_STOCK,
            message=f"Product {product_name} is out of stock (requested {requested}, available {available})",
            error_type="InsufficientStock",
            details={
                "product_id": product_id,
                "variant_id": variant_id,
                "requested": requested,
                "available": available,
            },
            field="items",
        )


class NoPurchasableVariantException(BusinessException):
    def __init__(self, product_name: str, *, product_id: int):
        super().__init__(
            code=BusinessCode.NO_PURCHASABLE_VARIANT,
            message=f"Product {product_name} has no purchasable variant",
            error_type="NoPurchasableVariant",
            details={"product_id": product_id},
            field="items",
        )


class InvalidOrderStateException(BusinessException):
    def __init__(self, message: str, *, order_id: Optional[int] = None, details: Optional[dict] = None):
        payload = {"order_id": order_id} if order_id is not None else {}
        if details:
            payload.update(details)
        super().__init__(
            code=BusinessCode.INVALID_ORDER_STATE,
            message=message,
            error_type="InvalidOrderState",
            details=payload or None,
        )


class VoucherInvalidException(BusinessException):
    def __init__(self, code: str, reason: str):
        super().__init__(
            code=BusinessCode.VOUCHER_INVALID,
            message=f"Voucher {code} cannot be applied: {reason}",
            error_type="VoucherInvalid",
            details={"code": code, "reason": reason},
            field="voucher_code",
        )


# --- Dependency failures ---------------------------------------------------


class StockRestorationFailedException(BusinessException):
    """Stock could not be restored on a path where restoration is mandatory."""

    def __init__(self, order_id: int, reason: str):
        super().__init__(
            code=BusinessCode.DEPENDENCY_FAILURE,
            message="Failed to restore stock for cancelled order",
            error_type="StockRestorationFailed",
            details={"order_id": order_id, "reason": reason},
        )
