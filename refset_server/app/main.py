from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from opensearchpy.exceptions import ConnectionError as OpenSearchConnectionError

from refset_server.app.api.routers import (
    health,
    search,
)
from refset_server.app.api.deps import build_registry
from refset_server.app.adapters.opensearch_client import close_client, get_client
from refset_server.app.platform.config import settings
from refset_server.app.platform.logging import setup_logging
from refset_server.app.platform.errors import (
    http_exception_handler,
    validation_exception_handler,
    search_unavailable_handler,
    unhandled_exception_handler,
    domain_exception_handler
)
from refset_server.app.platform import exceptions as domainex
from refset_server.app.middlewares.request_context import RequestContextMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 로깅 등 공통 준비
    setup_logging(
        log_to_file=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR,
        as_json=settings.LOG_AS_JSON,
        level=settings.LOG_LEVEL,
    )

    # OpenSearch 클라이언트와 핸들러 레지스트리를 한 번만 생성해서 공유
    app.state.opensearch = get_client()
    app.state.registry = build_registry(app.state.opensearch)
    logger.info("startup: app=%s handlers=%s", settings.APP_NAME, sorted(app.state.registry))
    try:
        yield
    finally:
        try:
            close_client()
        except OpenSearchConnectionError:
            logger.warning("shutdown: opensearch client close failed", exc_info=True)

app = FastAPI(title="Refset Search API", debug=settings.DEBUG, lifespan=lifespan)
app.include_router(health.router)
app.include_router(search.router, prefix="/api")

# Global Exception Filter
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(domainex.DomainError, domain_exception_handler)
app.add_exception_handler(OpenSearchConnectionError, search_unavailable_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# 요청 컨텍스트/액세스 로그 미들웨어
app.add_middleware(RequestContextMiddleware)
