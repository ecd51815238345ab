from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import status
from opensearchpy.exceptions import ConnectionError as OpenSearchConnectionError
from refset_server.app.platform.logging import request_id_ctx
from refset_server.app.platform import exceptions as domainex
import logging

def error_envelope(message, code="BAD_REQUEST", details=None, trace_id=None):
    return {
        "success": False,
        "error": {
            "code": code, "message": message, "details": details
        },
        "trace_id": trace_id
    }

async def http_exception_handler(request: Request, exc: HTTPException):
    # 4xx, 5xx 에러
    return JSONResponse(status_code=exc.status_code,
                        content=error_envelope(
                            exc.detail,
                            code=f"HTTP_{exc.status_code}",
                            trace_id=request_id_ctx.get()))

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # 422 Unprocessable Entity
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                        content=error_envelope(
                            "Unprocessable Entity",
                            code="VALIDATION_ERROR",
                            details=exc.errors(),
                            trace_id=request_id_ctx.get()))

async def search_unavailable_handler(request: Request, exc: OpenSearchConnectionError):
    logging.getLogger(__name__).error("Search backend unavailable: %s path=%s", exc, request.url.path)
    # 503 Service unavailable
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                        content=error_envelope(
                            "Search backend unavailable",
                            code="SEARCH_UNAVAILABLE",
                            trace_id=request_id_ctx.get()))

async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger(__name__).exception("Unhandled exception")
    # 500 Internal server error
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        content=error_envelope(
                            "Internal server error",
                            code="INTERNAL_ERROR",
                            trace_id=request_id_ctx.get()))

def domain_status(exc: domainex.DomainError) -> tuple[int, str]:
    """도메인 예외 -> (HTTP 상태, 에러 코드)"""
    if isinstance(exc, domainex.HandlerNotFoundError):
        return status.HTTP_404_NOT_FOUND, "HANDLER_NOT_FOUND"
    if isinstance(exc, domainex.ResourceNotFound):
        return status.HTTP_404_NOT_FOUND, "NOT_FOUND"
    if isinstance(exc, domainex.AmbiguousResultError):
        return status.HTTP_409_CONFLICT, "AMBIGUOUS_RESULT"
    if isinstance(exc, domainex.QueryParseError):
        return status.HTTP_400_BAD_REQUEST, "QUERY_PARSE_ERROR"
    if isinstance(exc, domainex.SortKeyError):
        return status.HTTP_400_BAD_REQUEST, "INVALID_SORT_FIELD"
    if isinstance(exc, domainex.InvalidInput):
        return status.HTTP_400_BAD_REQUEST, "INVALID_INPUT"
    return status.HTTP_400_BAD_REQUEST, "SERVICE_ERROR"

async def domain_exception_handler(request: Request, exc: domainex.DomainError):
    """
    도메인/유즈케이스 예외를 HTTP로 매핑.
    """
    http_status, code = domain_status(exc)

    logging.getLogger(__name__).warning(
        "Domain error: %s (%s) path=%s", exc, code, str(request.url)
    )
    return JSONResponse(
        status_code=http_status,
        content=error_envelope(
            str(exc),
            code=code,
            trace_id=request_id_ctx.get())
    )
