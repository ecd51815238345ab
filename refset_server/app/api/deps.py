from __future__ import annotations

from fastapi import Depends, Request
from opensearchpy import OpenSearch

from refset_server.app.adapters.opensearch_client import get_client
from refset_server.app.domain.list_pager import ListPager
from refset_server.app.domain.services.handler_registry import (
    SearchHandlerRegistry,
    get_registry as get_shared_registry,
)
from refset_server.app.domain.services.search_service import SearchService
from refset_server.app.platform.config import settings


# ---- 클라이언트 ----
def get_opensearch(request: Request) -> OpenSearch:
    """
    앱 시작 시 main.py의 lifespan에서 만들어 넣어둔 OpenSearch 클라이언트를 꺼낸다.
    없으면(테스트 등) 공유 클라이언트를 사용.
    """
    if hasattr(request.app.state, "opensearch"):
        return request.app.state.opensearch
    return get_client()


def build_registry(os: OpenSearch) -> SearchHandlerRegistry:
    """설정의 SEARCH_HANDLERS로 레지스트리를 만든다."""
    return SearchHandlerRegistry.build(
        os, settings.SEARCH_HANDLERS, settings.general_properties())


# ---- 레지스트리 ----
def get_registry(
    request: Request,
    os: OpenSearch = Depends(get_opensearch)) -> SearchHandlerRegistry:
    """
    lifespan에서 만든 레지스트리를 꺼낸다. 없으면 한 번만 생성해 공유한다.
    """
    if hasattr(request.app.state, "registry"):
        return request.app.state.registry
    return get_shared_registry(lambda: build_registry(os))


def get_search_service(
    registry: SearchHandlerRegistry = Depends(get_registry)) -> SearchService:
    """
    FastAPI DI에서 레지스트리를 받아 SearchService를 생성해 주입한다.
    """
    return SearchService(registry, ListPager(strict=settings.STRICT_SORT))
