"""
Payments API routes.

VNPay return endpoint plus landing and history reads. Signature checking and
reconciliation live in the application service; this module stays thin.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import Principal, get_current_principal, get_payment_service
from application.dto import PaginationParams
from application.dtos.payments import CallbackResult, PaymentHistoryDTO, PaymentLandingDTO
from application.services.payment_service import PaymentApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.payment.entity import PaymentStatus


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/vnpay-return", summary="VNPay 回调", response_model=ApiResponse[CallbackResult])
async def vnpay_return(
    request: Request,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    """
    VNPay 浏览器回跳地址

    签名错误返回 400 且不修改任何状态；重复回调返回 duplicate=true。
    """
    result = await service.verify_callback(dict(request.query_params))
    return success_response(data=result, message=result.message)


@router.get("/success", summary="支付成功落地页", response_model=ApiResponse[PaymentLandingDTO])
async def payment_success(
    order_id: int = Query(..., ge=1),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    landing = await service.get_landing(order_id, success=True)
    return success_response(data=landing, message=landing.message)


@router.get("/cancel", summary="支付取消落地页", response_model=ApiResponse[PaymentLandingDTO])
async def payment_cancel(
    order_id: int = Query(..., ge=1),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    landing = await service.get_landing(order_id, success=False)
    return success_response(data=landing, message=landing.message)


@router.get("/history", summary="我的支付记录", response_model=ApiResponse[PaginatedData[PaymentHistoryDTO]])
async def payment_history(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[PaymentStatus] = Query(None),
    principal: Principal = Depends(get_current_principal),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    pagination = PaginationParams(page=page, size=size)
    items, total = await service.list_user_history(principal.user_id, pagination, status)
    return paginated_response(items, total, pagination)
