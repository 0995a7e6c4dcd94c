"""
管理端API路由 - 订单履约与支付流水
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import (
    Principal,
    get_admin_principal,
    get_order_admin_service,
    get_order_query_service,
    get_payment_service,
)
from application.dto import PaginationParams
from application.dtos.orders import OrderDetailDTO, OrderDTO
from application.dtos.payments import PaymentHistoryDTO
from application.services.order_admin_service import OrderAdminService
from application.services.order_query_service import OrderQueryService
from application.services.payment_service import PaymentApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.order.entity import OrderPaymentStatus, PaymentMethod, ShippingStatus
from domain.order.repository import OrderSearchCriteria
from domain.payment.entity import PaymentStatus

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/orders", summary="订单列表", response_model=ApiResponse[PaginatedData[OrderDTO]])
async def list_orders(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=100, description="订单号 / 收件人 / 电话"),
    payment_status: Optional[OrderPaymentStatus] = Query(None),
    shipping_status: Optional[ShippingStatus] = Query(None),
    payment_method: Optional[PaymentMethod] = Query(None),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    _: Principal = Depends(get_admin_principal),
    service: OrderQueryService = Depends(get_order_query_service),
):
    pagination = PaginationParams(page=page, size=size)
    criteria = OrderSearchCriteria(
        payment_status=payment_status,
        shipping_status=shipping_status,
        payment_method=payment_method,
        search=search,
        created_from=created_from,
        created_to=created_to,
    )
    items, total = await service.search(criteria, pagination)
    return paginated_response(items, total, pagination)


@router.get("/orders/{order_id}", summary="订单详情", response_model=ApiResponse[OrderDetailDTO])
async def get_order(
    order_id: int,
    _: Principal = Depends(get_admin_principal),
    service: OrderQueryService = Depends(get_order_query_service),
):
    return success_response(data=await service.get_any(order_id))


@router.post("/orders/{order_id}/ship", summary="发货", response_model=ApiResponse[OrderDTO])
async def ship_order(
    order_id: int,
    _: Principal = Depends(get_admin_principal),
    service: OrderAdminService = Depends(get_order_admin_service),
):
    return success_response(data=await service.ship(order_id), message="Order shipped")


@router.post("/orders/{order_id}/deliver", summary="确认送达", response_model=ApiResponse[OrderDTO])
async def deliver_order(
    order_id: int,
    _: Principal = Depends(get_admin_principal),
    service: OrderAdminService = Depends(get_order_admin_service),
):
    return success_response(data=await service.deliver(order_id), message="Order delivered")


@router.get("/payments", summary="支付流水", response_model=ApiResponse[PaginatedData[PaymentHistoryDTO]])
async def list_payments(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[PaymentStatus] = Query(None),
    _: Principal = Depends(get_admin_principal),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    pagination = PaginationParams(page=page, size=size)
    items, total = await service.list_history(pagination, status)
    return paginated_response(items, total, pagination)
