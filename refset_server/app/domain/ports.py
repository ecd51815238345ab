"""
도메인 포트(추상 인터페이스).

SearchService(유스케이스)는 아래 포트에만 의존합니다.
구체 구현은 adapters 레이어에서 제공하고, 레지스트리/FastAPI DI로 주입합니다.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Type, TypeVar

from .entities import IndexedModel
from .models import HandlerResult, PfsParameter, QueryParameter

M = TypeVar("M", bound=IndexedModel)


class SearchHandler(Protocol):
    """
    이름으로 등록되는 검색 알고리즘.
    - 쿼리 조립 → 인덱스 실행 → 페이징/정렬 → 결과 변환
    - 쿼리 파싱 실패 시 리터럴 쿼리로 1회 재시도
    """

    name: str

    def configure(self, properties: Dict[str, Any]) -> None:
        """핸들러 속성(설정)을 반영한다."""
        ...

    def get_query_results(
        self,
        query: QueryParameter,
        entity_type: Type[M],
        pfs: PfsParameter | None) -> HandlerResult[M]:
        """
        Returns:
            HandlerResult: 페이지 창의 엔티티, 페이징 전 총 건수, 점수
        """
        ...

    def get_id_results(
        self,
        query: QueryParameter,
        entity_type: Type[M],
        pfs: PfsParameter | None) -> HandlerResult[str]:
        """
        Returns:
            HandlerResult: 페이지 창의 엔티티 id, 페이징 전 총 건수
        """
        ...

    def count_query_results(
        self,
        query: QueryParameter,
        entity_type: Type[M],
        pfs: PfsParameter | None) -> int:
        """
        Returns:
            int: 매칭 총 건수
        """
        ...
