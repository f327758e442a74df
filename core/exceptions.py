"""
全局异常处理器 - 业务码到 HTTP 状态码的映射，统一错误信封
"""
import traceback
import uuid
from typing import Mapping, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status

from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from .response import error_response


logger = get_logger(__name__)


_STATUS_BY_CODE = {
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,

    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.MONTHLY_QUOTA_EXCEEDED: http_status.HTTP_429_TOO_MANY_REQUESTS,
    BusinessCode.DAILY_LIMIT_EXCEEDED: http_status.HTTP_429_TOO_MANY_REQUESTS,
    BusinessCode.ORDER_CONFLICT: http_status.HTTP_409_CONFLICT,
    BusinessCode.INVALID_TRANSITION: http_status.HTTP_409_CONFLICT,
    BusinessCode.ALREADY_EXPIRED: http_status.HTTP_409_CONFLICT,

    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,

    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.CONFIGURATION_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,

    BusinessCode.TOO_MANY_REQUESTS: http_status.HTTP_429_TOO_MANY_REQUESTS,
}

# HTTPException（如缺少商户身份头）反向映射到业务码
_CODE_BY_STATUS = {
    http_status.HTTP_401_UNAUTHORIZED: BusinessCode.UNAUTHORIZED,
    http_status.HTTP_403_FORBIDDEN: BusinessCode.FORBIDDEN,
    http_status.HTTP_404_NOT_FOUND: BusinessCode.NOT_FOUND,
    http_status.HTTP_429_TOO_MANY_REQUESTS: BusinessCode.TOO_MANY_REQUESTS,
    http_status.HTTP_503_SERVICE_UNAVAILABLE: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（默认400）。"""
    try:
        return _STATUS_BY_CODE.get(BusinessCode(code), http_status.HTTP_400_BAD_REQUEST)
    except ValueError:
        return http_status.HTTP_400_BAD_REQUEST


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _render(
    request: Request,
    status_code: int,
    code: int,
    message: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    **error,
) -> JSONResponse:
    body = error_response(code, message, request_id=_request_id(request), **error)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def register_exception_handlers(app: FastAPI):
    """注册全局异常处理器"""

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        status_code = business_code_to_http_status(exc.code)
        if status_code >= 500:
            logger.error("business_exception", code=int(exc.code), error=exc.message, details=exc.details)
        else:
            logger.info("business_exception", code=int(exc.code), error_type=exc.error_type, status=status_code)

        # 限流类错误带上 Retry-After，便于客户端退避
        headers = None
        retry_after = (exc.details or {}).get("retry_after")
        if status_code == http_status.HTTP_429_TOO_MANY_REQUESTS and retry_after:
            headers = {"Retry-After": str(retry_after)}
        return _render(
            request,
            status_code,
            exc.code,
            exc.message,
            headers=headers,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        # loc 的首项是 body/query/path
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])
        return _render(
            request,
            http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            BusinessCode.PARAM_VALIDATION_ERROR,
            f"Validation failed: {first_error.get('msg', 'unknown')}",
            error_type="ValidationError",
            details={"errors": jsonable_encoder(errors)},
            field=field or None,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _render(
            request,
            exc.status_code,
            _CODE_BY_STATUS.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            str(exc.detail),
            headers=getattr(exc, "headers", None),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        return _render(
            request,
            http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            BusinessCode.SYSTEM_ERROR,
            "Internal server error",
            error_type="SystemError",
            details=details,
        )
