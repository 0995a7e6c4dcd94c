"""
请求/响应日志中间件

记录请求开始与结束（含耗时），对查询参数与请求体中的敏感字段脱敏。
支付回调的查询串携带签名，vnp_SecureHash 同样按敏感字段处理。
"""
import json
import time
from typing import Any, Optional
from urllib.parse import parse_qs

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

MASK = "***"


class LoggingMiddleware(BaseHTTPMiddleware):

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    # 小写比较
    SENSITIVE_FIELDS = {
        "password",
        "token",
        "secret",
        "api_key",
        "access_token",
        "authorization",
        "vnp_securehash",
        "hash_secret",
    }

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.enable_body_log_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_log_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        request_info = await self._request_info(request)
        logger.info("request_started", **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.perf_counter() - started,
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - started
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    async def _request_info(self, request: Request) -> dict:
        info: dict[str, Any] = {
            "query_params": self.sanitize(dict(request.query_params)),
        }
        if request.path_params:
            info["path_params"] = dict(request.path_params)
        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._read_body(request)
            if body is not None:
                info["body"] = body
        user_agent = request.headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    def _should_log_body(self, request: Request) -> bool:
        # X-Log-Body: true/false 覆盖默认值
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.enable_body_log_default and settings.DEBUG)

    async def _read_body(self, request: Request) -> Optional[Any]:
        body = await request.body()
        if not body:
            return None
        text = body[: self.max_body_log_bytes].decode("utf-8", errors="ignore")
        content_type = request.headers.get("content-type", "").lower()
        if "application/json" in content_type:
            try:
                return self.sanitize(json.loads(text))
            except ValueError:
                return text
        if "application/x-www-form-urlencoded" in content_type:
            return self.sanitize({k: v if len(v) > 1 else v[0] for k, v in parse_qs(text).items()})
        return text

    @classmethod
    def sanitize(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: (MASK if str(k).lower() in cls.SENSITIVE_FIELDS else cls.sanitize(v))
                for k, v in data.items()
            }
        if isinstance(data, (list, tuple)):
            return [cls.sanitize(v) for v in data]
        return data

    def _log_response(self, response: Response, duration: float, request_info: dict) -> None:
        status_code = response.status_code
        log_data = {"status_code": status_code, "duration": duration, **request_info}
        if status_code < 400:
            logger.info("request_completed", **log_data)
        elif status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
