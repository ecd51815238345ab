"""
도메인 모델 정의.

- PfsParameter: 페이징/필터링/정렬(PFS) 요청 파라미터
- QueryParameter: 자유 텍스트 + 필드 절 + 추가 절로 구성된 구조화 쿼리
- HandlerResult: 검색 핸들러 1회 호출 결과(아이템/총 건수/점수)
- ResultList: 호출자에게 돌려주는 페이지 결과(요청 limit/offset 포함)

Pydantic v2 기반 모델이라 검증/직렬화가 용이합니다.
"""

from __future__ import annotations

from typing import Generic, TypeVar
from pydantic import BaseModel, Field, model_validator


T = TypeVar("T")

# 정렬 필드 목록에 이 값이 있으면 다른 정렬 필드는 무시하고 무작위 정렬
RANDOM = "RANDOM"


def split_sort_field(entry: str) -> tuple[str, bool | None]:
    """
    "name desc" 처럼 방향이 붙은 정렬 필드를 (필드, 오름차순 여부)로 나눈다.
    방향이 없으면 두 번째 값은 None.
    """
    entry = entry.strip()
    if entry.endswith(" asc"):
        return entry[:-4].strip(), True
    if entry.endswith(" desc"):
        return entry[:-5].strip(), False
    return entry, None


class PfsParameter(BaseModel):
    """페이징/필터링/정렬 파라미터."""
    limit: int = Field(-1, ge=-1, description="최대 결과 수(-1 = 제한 없음)")
    offset: int = Field(0, ge=-1, description="시작 위치(-1 = 페이징 없음)")
    sort: str | None = Field(None, description="단일 정렬 필드(a.b.c 형태 가능)")
    sort_fields: list[str] = Field(
        default_factory=list, description="sort 미지정 시 사용하는 다중 정렬 필드"
    )
    ascending: bool = Field(True, description="오름차순 여부")

    def effective_sort_fields(self) -> list[str]:
        """sort가 있으면 그것만, 없으면 sort_fields."""
        if self.sort:
            return [self.sort]
        return list(self.sort_fields or [])

    def is_random(self) -> bool:
        return RANDOM in self.effective_sort_fields()


class QueryParameter(BaseModel):
    """구조화 쿼리. query가 비어 있으면 전체 매칭으로 취급한다."""
    query: str | None = Field(None, description="자유 텍스트(질의 문법 그대로)")
    fielded_clauses: dict[str, str] = Field(
        default_factory=dict, description="필드명 -> 정확 매칭 값 (AND)"
    )
    additional_clauses: set[str] = Field(
        default_factory=set, description="미리 구성된 쿼리 조각 (AND)"
    )


class HandlerResult(BaseModel, Generic[T]):
    """검색 핸들러 1회 호출 결과. 점수는 호출 단위로만 존재한다."""
    items: list[T] = Field(default_factory=list)
    total: int = Field(0, ge=0)
    score_map: dict[str, float] = Field(default_factory=dict)


class ResultList(BaseModel, Generic[T]):
    """페이지 결과 봉투."""
    items: list[T] = Field(default_factory=list)
    total: int = Field(0, ge=0, description="페이징 전 전체 매칭 건수")
    limit: int = -1
    offset: int = 0
    score_map: dict[str, float] = Field(default_factory=dict)
    time_taken: int | None = Field(None, description="소요 시간(ms)")

    @model_validator(mode="after")
    def _check_window(self) -> "ResultList[T]":
        if self.total < len(self.items):
            raise ValueError(f"total {self.total} is smaller than item count {len(self.items)}")
        # offset == -1 이면 페이징 없이 전체 목록을 담는다
        if self.offset != -1 and self.limit >= 0 and len(self.items) > self.limit:
            raise ValueError(f"item count {len(self.items)} exceeds limit {self.limit}")
        return self
