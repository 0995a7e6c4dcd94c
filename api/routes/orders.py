"""
订单API路由 - 顾客端
"""
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, Query, status

from api.dependencies import (
    Principal,
    get_client_ip,
    get_current_principal,
    get_order_query_service,
    get_order_service,
)
from application.dto import PaginationParams
from application.dtos.orders import (
    CancelCashOnDeliveryDTO,
    CashOnDeliveryOrderResult,
    CreateOrderDTO,
    OnlinePaymentOrderResult,
    OrderDetailDTO,
    OrderDTO,
    PaymentRedirectDTO,
)
from application.services.order_query_service import OrderQueryService
from application.services.order_service import OrderApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.order.entity import OrderPaymentStatus, ShippingStatus

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    summary="创建订单",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[Union[OnlinePaymentOrderResult, CashOnDeliveryOrderResult]],
)
async def create_order(
    body: CreateOrderDTO,
    principal: Principal = Depends(get_current_principal),
    client_ip: str = Depends(get_client_ip),
    service: OrderApplicationService = Depends(get_order_service),
):
    """
    创建订单

    - 金额由服务端根据商品变体价格计算，请求中的金额字段会被忽略
    - **ONLINE_PAYMENT** 返回结果中包含 VNPay 支付跳转地址
    """
    result = await service.create(
        principal.user_id,
        body,
        client_ip=client_ip,
        contact_email=principal.email,
    )
    return success_response(data=result, message="Order created")


@router.get("", summary="我的订单列表", response_model=ApiResponse[PaginatedData[OrderDTO]])
async def list_orders(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    payment_status: Optional[OrderPaymentStatus] = Query(None),
    shipping_status: Optional[ShippingStatus] = Query(None),
    principal: Principal = Depends(get_current_principal),
    service: OrderQueryService = Depends(get_order_query_service),
):
    pagination = PaginationParams(page=page, size=size)
    items, total = await service.list_for_user(
        principal.user_id,
        pagination,
        payment_status=payment_status,
        shipping_status=shipping_status,
    )
    return paginated_response(items, total, pagination)


@router.get("/{order_id}", summary="订单详情", response_model=ApiResponse[OrderDetailDTO])
async def get_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    service: OrderQueryService = Depends(get_order_query_service),
):
    return success_response(data=await service.get_detail(order_id, principal.user_id))


@router.post("/{order_id}/cancel", summary="取消订单", response_model=ApiResponse[OrderDTO])
async def cancel_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.cancel(order_id, principal.user_id)
    return success_response(data=order, message="Order cancelled")


@router.post("/{order_id}/cancel-cod", summary="取消货到付款订单", response_model=ApiResponse[OrderDTO])
async def cancel_cash_on_delivery(
    order_id: int,
    body: Optional[CancelCashOnDeliveryDTO] = Body(None),
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    """库存回补失败时整单回滚并返回 500"""
    reason = body.reason if body else None
    order = await service.cancel_cash_on_delivery(order_id, principal.user_id, reason)
    return success_response(data=order, message="Order cancelled")


@router.post("/{order_id}/pay", summary="重新发起在线支付", response_model=ApiResponse[PaymentRedirectDTO])
async def pay_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    client_ip: str = Depends(get_client_ip),
    service: OrderApplicationService = Depends(get_order_service),
):
    redirect = await service.process_payment(order_id, principal.user_id, client_ip)
    return success_response(data=redirect)
