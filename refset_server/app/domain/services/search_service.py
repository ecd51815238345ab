# app/domain/services/search_service.py
"""
SearchService
==============

페이지 검색 유스케이스.

Flow:
    요청 → 핸들러 선택(레지스트리) → 핸들러 검색 → ResultList

- 도메인은 **Port(SearchHandler)** 에만 의존합니다. (DIP)
- 핸들러는 레지스트리에서 이름으로 꺼내 씁니다. 이름이 없으면 DEFAULT.

예시:
    svc = SearchService(registry)
    result = svc.find(QueryParameter(query="heart"), Refset, PfsParameter(limit=10))
    one = svc.find_single(QueryParameter(fielded_clauses={"refset_id": "123"}), Refset)
"""

from __future__ import annotations

import logging
import time
from typing import List, Sequence, Type, TypeVar

from refset_server.app.domain.entities import IndexedModel
from refset_server.app.domain.list_pager import ListPager
from refset_server.app.domain.models import PfsParameter, QueryParameter, ResultList
from refset_server.app.domain.ports import SearchHandler
from refset_server.app.domain.services.handler_registry import SearchHandlerRegistry
from refset_server.app.platform.exceptions import AmbiguousResultError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=IndexedModel)
T = TypeVar("T")


class SearchService:

    def __init__(
        self,
        registry: SearchHandlerRegistry,
        pager: ListPager | None = None) -> None:
        self._registry = registry
        self._pager = pager or ListPager()

    # ================= public API =================
    def find(
        self,
        query: QueryParameter | None,
        entity_type: Type[M],
        pfs: PfsParameter | None = None,
        handler: str | None = None) -> ResultList[M]:
        """
        엔티티 검색.
        Args:
            query: 구조화 쿼리(None이면 전체 매칭)
            entity_type: 검색 대상 엔티티 타입
            pfs: 페이징/정렬 파라미터(None이면 페이징 없음)
            handler: 핸들러 이름(None이면 DEFAULT)
        Returns:
            ResultList: 페이지 아이템 + 페이징 전 총 건수
        """
        query = query or QueryParameter()
        search_handler = self._handler(handler)
        self._pager.check_sort_fields(entity_type, pfs)
        start = time.perf_counter()
        result = search_handler.get_query_results(query, entity_type, pfs)
        ms = self._elapsed_ms(start)
        logger.info("service.find: handler=%s entity=%s total=%s size=%s took_ms=%s",
                    search_handler.name, entity_type.__name__, result.total, len(result.items), ms,
                    extra={"handler": search_handler.name, "entity": entity_type.__name__,
                           "total": result.total, "took_ms": ms})
        return self._result_list(result.items, result.total, pfs, result.score_map, ms)

    def find_ids(
        self,
        query: QueryParameter | None,
        entity_type: Type[M],
        pfs: PfsParameter | None = None,
        handler: str | None = None) -> ResultList[str]:
        """find와 같되 엔티티 id만 반환한다."""
        query = query or QueryParameter()
        search_handler = self._handler(handler)
        self._pager.check_sort_fields(entity_type, pfs)
        start = time.perf_counter()
        result = search_handler.get_id_results(query, entity_type, pfs)
        ms = self._elapsed_ms(start)
        logger.info("service.find_ids: handler=%s entity=%s total=%s size=%s took_ms=%s",
                    search_handler.name, entity_type.__name__, result.total, len(result.items), ms)
        return self._result_list(result.items, result.total, pfs, result.score_map, ms)

    def find_total(
        self,
        query: QueryParameter | None,
        entity_type: Type[M],
        pfs: PfsParameter | None = None,
        handler: str | None = None) -> int:
        """매칭 총 건수."""
        query = query or QueryParameter()
        search_handler = self._handler(handler)
        total = search_handler.count_query_results(query, entity_type, pfs)
        logger.info("service.find_total: handler=%s entity=%s total=%s",
                    search_handler.name, entity_type.__name__, total)
        return total

    def find_single(
        self,
        query: QueryParameter | None,
        entity_type: Type[M],
        handler: str | None = None) -> M | None:
        """
        정확히 한 건을 기대하는 검색.
        Returns:
            매칭이 없으면 None, 한 건이면 그 엔티티
        Raises:
            AmbiguousResultError: 두 건 이상 매칭
        """
        query = query or QueryParameter()
        search_handler = self._handler(handler)
        result = search_handler.get_query_results(
            query, entity_type, PfsParameter(offset=0, limit=2))
        if result.total > 1 or len(result.items) > 1:
            raise AmbiguousResultError(
                max(result.total, len(result.items)),
                f"Unexpected number of {entity_type.__name__} results: {result.total}")
        if not result.items:
            return None
        return result.items[0]

    def apply_pfs_to_list(
        self,
        items: Sequence[T],
        pfs: PfsParameter | None) -> ResultList[T]:
        """
        메모리 리스트에 정렬/페이징을 적용한다.
        Returns:
            ResultList: total은 자르기 전 건수
        """
        page, total = self._pager.sort_and_page(items, pfs)
        return self._result_list(page, total, pfs)

    # ================= internal helpers =================
    def _handler(self, name: str | None) -> SearchHandler:
        return self._registry.get_handler(name)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    @staticmethod
    def _result_list(
        items: List[T],
        total: int,
        pfs: PfsParameter | None,
        score_map: dict[str, float] | None = None,
        time_taken: int | None = None) -> ResultList[T]:
        window = pfs or PfsParameter()
        return ResultList(
            items=list(items),
            total=max(total, len(items)),
            limit=window.limit,
            offset=window.offset,
            score_map=dict(score_map or {}),
            time_taken=time_taken,
        )
