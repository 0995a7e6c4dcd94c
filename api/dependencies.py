"""
API依赖项 - 认证、授权与应用服务装配
"""
from dataclasses import dataclass
from typing import Callable, Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.middleware.request_id import resolve_client_ip
from application.ports.notifications import OrderConfirmationSender
from application.ports.payment_gateway import PaymentGateway
from application.services.order_admin_service import OrderAdminService
from application.services.order_query_service import OrderQueryService
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentApplicationService
from application.services.voucher_service import VoucherApplicationService
from core.config import settings
from core.exceptions import ForbiddenException, TokenExpiredException, UnauthorizedException
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)

http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT issued by the auth service",
    auto_error=False,
)


@dataclass(frozen=True)
class Principal:
    """令牌中携带的调用方身份"""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE


def decode_principal(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredException()
    except jwt.PyJWTError as e:
        logger.warning("invalid_access_token", error=str(e))
        raise UnauthorizedException("Invalid authentication credentials")

    subject = payload.get("sub")
    if subject is None or str(subject).strip() == "":
        raise UnauthorizedException("Token has no subject")
    return Principal(
        user_id=str(subject),
        email=payload.get("email"),
        name=payload.get("name"),
        role=payload.get("role"),
    )


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Authentication credentials were not provided")
    principal = decode_principal(credentials.credentials)
    structlog.contextvars.bind_contextvars(user_id=principal.user_id)
    return principal


async def get_admin_principal(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise ForbiddenException("Admin role required")
    return principal


def get_client_ip(request: Request) -> str:
    return getattr(request.state, "client_ip", None) or resolve_client_ip(request)


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


def get_payment_gateway(request: Request) -> PaymentGateway:
    # lifespan 中构建，配置缺失时应用不会启动
    return request.app.state.payment_gateway


def get_email_sender(request: Request) -> OrderConfirmationSender:
    return request.app.state.email_sender


async def get_payment_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    email_sender: OrderConfirmationSender = Depends(get_email_sender),
) -> PaymentApplicationService:
    return PaymentApplicationService(uow_factory, gateway, email_sender)


async def get_order_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    payment_service: PaymentApplicationService = Depends(get_payment_service),
) -> OrderApplicationService:
    return OrderApplicationService(uow_factory, payment_service)


async def get_order_query_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> OrderQueryService:
    return OrderQueryService(uow_factory)


async def get_order_admin_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> OrderAdminService:
    return OrderAdminService(uow_factory)


async def get_voucher_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> VoucherApplicationService:
    return VoucherApplicationService(uow_factory)
