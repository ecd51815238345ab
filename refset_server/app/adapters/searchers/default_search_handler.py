"""
OpenSearch 기반 기본 SearchHandler 구현체.

조립된 쿼리를 query_string 쿼리로 실행하고, 파싱 실패 시
리터럴 구문 쿼리로 한 번 더 시도한다.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, Iterable, List, Literal, Tuple, Type

from opensearchpy import OpenSearch
from opensearchpy.exceptions import RequestError
from pydantic import ValidationError

from refset_server.app.domain.entities import IndexedModel
from refset_server.app.domain.models import (
    HandlerResult,
    PfsParameter,
    QueryParameter,
    split_sort_field,
)
from refset_server.app.domain.ports import SearchHandler
from refset_server.app.domain.query_composer import MATCH_ALL, compose
from refset_server.app.platform.exceptions import QueryParseError

logger = logging.getLogger(__name__)

Mode = Literal["entity", "id", "count"]

# 파싱 실패로 보는 OpenSearch 오류 타입
PARSE_ERROR_TYPES = frozenset({
    "parse_exception",
    "query_parsing_exception",
    "x_content_parse_exception",
})
PARSE_ERROR_REASONS = ("failed to parse query", "cannot parse", "lexical error")

# 점수는 5.0 이상을 "좋은 매칭"으로 보고 [0, 1]로 정규화
SCORE_CAP = 5.0


def normalize_score(score: float) -> float:
    return min(SCORE_CAP, float(score)) / SCORE_CAP


def is_parse_error(exc: RequestError) -> bool:
    """
    RequestError가 쿼리 문법 오류인지 판단한다.
    Args:
        exc: OpenSearch RequestError(400)
    Returns:
        bool: 파싱 오류 여부
    """
    info = exc.info if isinstance(exc.info, dict) else {}
    error = info.get("error")
    types = {str(exc.error)}
    reasons = [str(exc.error)]
    if isinstance(error, dict):
        causes = [c for c in error.get("root_cause") or [] if isinstance(c, dict)]
        for part in [error, *causes]:
            types.add(str(part.get("type", "")))
            reasons.append(str(part.get("reason", "")))
    elif error is not None:
        reasons.append(str(error))

    if types & PARSE_ERROR_TYPES:
        return True
    return any(marker in reason.lower() for reason in reasons for marker in PARSE_ERROR_REASONS)


def split_date_clauses(query_string: str, date_fields: Iterable[str]) -> Tuple[str, List[Dict[str, Any]]]:
    """
    field:YYYY-MM-DD 절을 쿼리에서 떼어내 range 쿼리로 바꾼다.

    Args:
        query_string: 조립된 쿼리
        date_fields: 엔티티의 날짜 필드
    Returns:
        (날짜 절이 제거된 쿼리, range 쿼리 목록)
    """
    fields = sorted(date_fields)
    if not fields:
        return query_string, []

    pattern = re.compile(
        r"(?:\s+(?:AND|OR)\s+)?(?<![\w.])("
        + "|".join(re.escape(f) for f in fields)
        + r"):(\d{4})\\?-(\d{2})\\?-(\d{2})\b"
    )
    ranges: List[Dict[str, Any]] = []

    def lift(m: re.Match) -> str:
        day = f"{m.group(2)}-{m.group(3)}-{m.group(4)}"
        ranges.append({"range": {m.group(1): {"gte": day, "lte": day, "format": "yyyy-MM-dd"}}})
        return ""

    remaining = pattern.sub(lift, query_string)
    if not ranges:
        return query_string, []
    return _tidy(remaining), ranges


def _tidy(query_string: str) -> str:
    # 절을 떼어낸 자리에 남은 빈 괄호와 앞쪽 연산자 정리
    q = query_string.replace("() AND", "").replace("( AND ", "(").replace("( OR ", "(").replace("() OR", "")
    q = q.strip()
    q = re.sub(r"^(?:AND|OR)\s+", "", q)
    q = re.sub(r"\s+(?:AND|OR)$", "", q)
    if q in ("", "()"):
        return MATCH_ALL
    return q


class DefaultSearchHandler(SearchHandler):

    name = "DEFAULT"

    def __init__(self, client: OpenSearch, properties: Dict[str, Any] | None = None) -> None:
        self.client = client
        self.properties: Dict[str, Any] = {}
        self.index_prefix = ""
        self.request_timeout: float | None = None
        self.max_results = 10000
        if properties:
            self.configure(properties)

    def configure(self, properties: Dict[str, Any]) -> None:
        """
        핸들러 속성을 반영한다. 핸들러 자신의 키가 general.* 키보다 우선한다.
        Args:
            properties: index_prefix, request_timeout, max_results 등
        """
        self.properties.update(properties)
        self.index_prefix = str(self._property("index_prefix", self.index_prefix) or "")
        timeout = self._property("request_timeout", self.request_timeout)
        self.request_timeout = float(timeout) if timeout is not None else None
        self.max_results = int(self._property("max_results", self.max_results))

    def index_for(self, entity_type: Type[IndexedModel]) -> str:
        if self.index_prefix:
            return f"{self.index_prefix}-{entity_type.index_name}"
        return entity_type.index_name

    # ================= public API =================
    def get_query_results(
        self,
        query: QueryParameter,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None) -> HandlerResult[IndexedModel]:
        """
        검색 결과 엔티티를 반환한다.
        인덱스 문서가 엔티티로 변환되지 않으면 건너뛴다.
        """
        response = self._search(query, entity_type, pfs, mode="entity")
        items: List[IndexedModel] = []
        scores: Dict[str, float] = {}
        for hit in response["hits"]["hits"]:
            source = hit.get("_source")
            if source is None:
                continue
            try:
                entity = entity_type.model_validate({**source, "id": hit["_id"]})
            except ValidationError as e:
                logger.warning("search.skip: index document %s is not a valid %s: %s",
                               hit.get("_id"), entity_type.__name__, e)
                continue
            items.append(entity)
            if hit.get("_score") is not None:
                scores[entity.id] = normalize_score(hit["_score"])
        return HandlerResult(items=items, total=self._total(response), score_map=scores)

    def get_id_results(
        self,
        query: QueryParameter,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None) -> HandlerResult[str]:
        """검색 결과의 id만 반환한다(_source 미조회)."""
        response = self._search(query, entity_type, pfs, mode="id")
        ids: List[str] = []
        scores: Dict[str, float] = {}
        for hit in response["hits"]["hits"]:
            ids.append(hit["_id"])
            if hit.get("_score") is not None:
                scores[hit["_id"]] = normalize_score(hit["_score"])
        return HandlerResult(items=ids, total=self._total(response), score_map=scores)

    def count_query_results(
        self,
        query: QueryParameter,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None) -> int:
        """매칭 총 건수만 반환한다."""
        response = self._search(query, entity_type, pfs, mode="count")
        return self._total(response)

    def build_body(
        self,
        query_string: str,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None,
        mode: Mode = "entity") -> Dict[str, Any]:
        """
        검색 요청 바디를 구성한다.

        Args:
            query_string: 조립된 쿼리
            entity_type: 검색 대상 엔티티
            pfs: 페이징/정렬 파라미터
            mode: entity | id | count
        Returns:
            Dict[str, Any]: 검색 요청 바디
        """
        randomize = pfs is not None and pfs.is_random()
        body: Dict[str, Any] = {
            "query": self._build_query(query_string, entity_type, randomize),
            "track_total_hits": True,
        }
        if mode == "count":
            body["size"] = 0
            return body

        offset = pfs.offset if pfs is not None and pfs.offset >= 0 else 0
        limit = pfs.limit if pfs is not None and pfs.limit >= 0 else self.max_results
        body["from"] = offset
        body["size"] = min(limit, self.max_results)

        sort = self._build_sort(entity_type, pfs)
        if sort:
            body["sort"] = sort
        if mode == "id":
            body["_source"] = False
        return body

    #================= internal helpers =================
    def _property(self, key: str, default: Any = None) -> Any:
        if key in self.properties:
            return self.properties[key]
        return self.properties.get(f"general.{key}", default)

    def _search(
        self,
        query: QueryParameter,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None,
        mode: Mode) -> Dict[str, Any]:
        composed = compose(query.query, query.fielded_clauses, query.additional_clauses)
        index = self.index_for(entity_type)
        try:
            return self._execute(index, composed.primary, entity_type, pfs, mode)
        except QueryParseError as e:
            if composed.literal is None:
                raise
            logger.warning("search.fallback: handler=%s index=%s query=%s literal=%s reason=%s",
                           self.name, index, composed.primary, composed.literal, e.reason)
            return self._execute(index, composed.literal, entity_type, pfs, mode)

    def _execute(
        self,
        index: str,
        query_string: str,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None,
        mode: Mode) -> Dict[str, Any]:
        body = self.build_body(query_string, entity_type, pfs, mode)
        logger.debug("search.body: index=%s body=%s", index, body)
        params: Dict[str, Any] = {}
        if self.request_timeout is not None:
            params["request_timeout"] = self.request_timeout

        start = time.perf_counter()
        try:
            response = self.client.search(index=index, body=body, **params)
        except RequestError as e:
            if is_parse_error(e):
                raise QueryParseError(query_string, str(e.error)) from e
            raise
        ms = (time.perf_counter() - start) * 1000
        total = self._total(response)
        logger.info("search: handler=%s index=%s mode=%s query=%s total=%s took_ms=%.2f",
                    self.name, index, mode, query_string, total, ms,
                    extra={"handler": self.name, "index": index, "total": total,
                           "took_ms": round(ms, 2)})
        return response

    def _build_query(
        self,
        query_string: str,
        entity_type: Type[IndexedModel],
        randomize: bool = False) -> Dict[str, Any]:
        remaining, ranges = split_date_clauses(query_string or MATCH_ALL, entity_type.date_fields)
        query: Dict[str, Any] = {
            "query_string": {
                "query": remaining,
                "default_operator": "AND",
                "analyze_wildcard": True,
            }
        }
        if ranges:
            query = {"bool": {"must": [query, *ranges]}}
        if randomize:
            query = {
                "function_score": {
                    "query": query,
                    "random_score": {},
                    "boost_mode": "replace",
                }
            }
        return query

    def _build_sort(
        self,
        entity_type: Type[IndexedModel],
        pfs: PfsParameter | None) -> List[Dict[str, Any]]:
        if pfs is None or pfs.is_random():
            return []
        sort: List[Dict[str, Any]] = []
        for entry in pfs.effective_sort_fields():
            field, direction = split_sort_field(entry)
            ascending = pfs.ascending if direction is None else direction
            sort.append({entity_type.sort_field_for(field): {"order": "asc" if ascending else "desc"}})
        return sort

    @staticmethod
    def _total(response: Dict[str, Any]) -> int:
        total = response.get("hits", {}).get("total", 0)
        if isinstance(total, dict):
            return int(total.get("value", 0))
        return int(total or 0)
