"""
쿼리 문자열 조립.

자유 텍스트, 필드 절(field:value), 추가 절을 AND로 묶어
query_string 문법의 최종 쿼리를 만든다. 기본 쿼리가 파싱에 실패했을 때
다시 시도할 리터럴 구문 쿼리도 함께 만든다.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

# 조건이 하나도 없을 때의 전체 매칭 쿼리
MATCH_ALL = "*:*"

# Lucene QueryParser 예약 문자
_SPECIAL_CHARS = frozenset('\\+-!():^[]"{}~*?|&/')


class ComposedQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: str = Field(..., description="실행할 쿼리")
    literal: str | None = Field(None, description="파싱 실패 시 재시도할 리터럴 쿼리")


def escape(text: str) -> str:
    """예약 문자 앞에 백슬래시를 붙인다."""
    return "".join("\\" + c if c in _SPECIAL_CHARS else c for c in text)


def compose_query(operator: str, *clauses: str | None) -> str:
    """
    비어 있지 않은 절만 operator로 잇는다.
    OR는 괄호로 감싸고, 남는 절이 없으면 빈 문자열을 돌려준다.
    """
    parts = [c for c in clauses if c and c.strip()]
    joined = f" {operator} ".join(parts)
    if operator == "OR":
        return f"({joined})" if parts else ""
    return joined


def strip_quotes(text: str) -> str:
    """양끝 큰따옴표 한 겹만 벗긴다."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def literal_phrase(text: str) -> str:
    return '"' + escape(strip_quotes(text)) + '"'


def fielded_part(fielded_clauses: Mapping[str, str] | None) -> str:
    clauses = (
        f"{field}:{escape(value)}"
        for field, value in sorted((fielded_clauses or {}).items())
        if field and value
    )
    return compose_query("AND", *clauses)


def additional_part(additional_clauses: Iterable[str] | None) -> str:
    return compose_query("AND", *sorted(additional_clauses or ()))


def compose(
    query: str | None,
    fielded_clauses: Mapping[str, str] | None = None,
    additional_clauses: Iterable[str] | None = None) -> ComposedQuery:
    """
    최종 쿼리를 조립한다.

    Args:
        query: 자유 텍스트(그대로 사용)
        fielded_clauses: 필드 -> 정확 매칭 값
        additional_clauses: 미리 구성된 쿼리 조각
    Returns:
        ComposedQuery: primary(전부 비면 MATCH_ALL), literal(자유 텍스트가 없으면 None)

    예시:
        compose('"heart failure"', {"status": "active"})
        # primary = '("heart failure") AND status:active'
        # literal = '"heart failure" AND status:active'
    """
    part1 = fielded_part(fielded_clauses)
    part2 = additional_part(additional_clauses)
    text = query.strip() if query else ""

    part3 = f"({text})" if text and (part1 or part2) else text
    primary = compose_query("AND", part3, part1, part2) or MATCH_ALL

    literal = None
    if text:
        literal = compose_query("AND", literal_phrase(text), part1, part2)
    return ComposedQuery(primary=primary, literal=literal)
