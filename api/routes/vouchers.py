from fastapi import APIRouter, Depends

from api.dependencies import Principal, get_current_principal, get_voucher_service
from application.dtos.vouchers import VerifyVoucherDTO, VoucherVerificationDTO
from application.services.voucher_service import VoucherApplicationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/vouchers", tags=["Vouchers"])


@router.post("/verify", summary="校验优惠券", response_model=ApiResponse[VoucherVerificationDTO])
async def verify_voucher(
    body: VerifyVoucherDTO,
    _: Principal = Depends(get_current_principal),
    service: VoucherApplicationService = Depends(get_voucher_service),
):
    """只计算折扣，不占用使用次数"""
    result = await service.verify(body)
    return success_response(data=result, message="Voucher is valid" if result.valid else result.reason)
