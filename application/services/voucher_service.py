from __future__ import annotations

from typing import Callable

from application.dtos.vouchers import VerifyVoucherDTO, VoucherVerificationDTO
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.voucher.service import VoucherApplier


class VoucherApplicationService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def verify(self, dto: VerifyVoucherDTO) -> VoucherVerificationDTO:
        """只校验不核销；未知券码抛出 VoucherNotFoundException"""
        async with self._uow_factory(readonly=True) as uow:
            result = await VoucherApplier(uow.voucher_repository).verify(dto.code, dto.subtotal)
        return VoucherVerificationDTO.from_verification(result)
