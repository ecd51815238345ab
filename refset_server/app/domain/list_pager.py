"""
메모리 리스트 정렬/페이징.

텍스트 인덱스를 거치지 않는 목록(후처리 필터링 결과 등)에
PfsParameter의 정렬과 페이지 창을 적용한다.
"""

from __future__ import annotations

import logging
import random
from datetime import date, datetime, time, timezone
from enum import Enum
from functools import cmp_to_key
from typing import Any, List, Sequence, Tuple, TypeVar

from refset_server.app.domain.models import PfsParameter, split_sort_field
from refset_server.app.domain.sort_keys import SortKeyExtractor
from refset_server.app.platform.exceptions import SortKeyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, date)) and not isinstance(value, bool)


def _numeric_key(value: Any) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp()
    return value


def _text_key(value: Any) -> str:
    if isinstance(value, Enum):
        return value.name
    return str(value)


def compare_values(v1: Any, v2: Any, ascending: bool) -> int:
    """
    정렬 값 두 개를 비교한다.
    오름차순은 None이 앞, 내림차순은 None이 뒤.
    둘 다 숫자/날짜면 숫자로, 아니면 문자열로 비교한다.
    """
    if v1 is None and v2 is None:
        return 0
    if ascending:
        if v1 is None:
            return -1
        if v2 is None:
            return 1
    else:
        if v1 is None:
            return 1
        if v2 is None:
            return -1

    if _is_numeric(v1) and _is_numeric(v2):
        k1, k2 = _numeric_key(v1), _numeric_key(v2)
    else:
        k1, k2 = _text_key(v1), _text_key(v2)
    if k1 == k2:
        return 0
    result = -1 if k1 < k2 else 1
    return result if ascending else -result


class ListPager:
    """
    Args:
        extractor: 정렬 키 추출기(없으면 새로 생성)
        strict: True면 정렬 키 추출 실패를 그대로 올리고,
                False면 해당 비교를 동등으로 처리한다.
    """

    def __init__(self, extractor: SortKeyExtractor | None = None, strict: bool = False) -> None:
        self._extractor = extractor or SortKeyExtractor()
        self._strict = strict

    # ================= public API =================
    def sort_and_page(
        self,
        items: Sequence[T],
        pfs: PfsParameter | None) -> Tuple[List[T], int]:
        """
        정렬 후 페이지 창을 잘라낸다.
        Args:
            items: 전체 목록(변경하지 않음)
            pfs: 페이징/정렬 파라미터
        Returns:
            (페이지 아이템, 자르기 전 전체 건수)
        """
        result: List[T] = list(items)
        if pfs is None:
            return result, len(result)

        sort_fields = pfs.effective_sort_fields()
        if pfs.is_random():
            random.Random().shuffle(result)
        elif sort_fields:
            result = self._sort(result, sort_fields, pfs.ascending)

        total = len(result)
        if pfs.offset == -1:
            return result, total

        start = pfs.offset
        end = total if pfs.limit == -1 else min(total, start + pfs.limit)
        if start >= end:
            return [], total
        return result[start:end], total

    def check_sort_fields(self, entity_type: type, pfs: PfsParameter | None) -> None:
        """
        strict 모드에서 검색 전에 엔티티 타입 기준으로 정렬 경로를 검증한다.
        Raises:
            SortKeyError: 접근자가 없거나 정렬할 수 없는 타입의 경로
        """
        if not self._strict or pfs is None or pfs.is_random():
            return
        paths = [split_sort_field(entry)[0] for entry in pfs.effective_sort_fields()]
        if paths:
            self._extractor.validate(entity_type, paths)

    # ================= internal helpers =================
    def _sort(self, items: List[T], sort_fields: List[str], ascending: bool) -> List[T]:
        fields = []
        for entry in sort_fields:
            name, direction = split_sort_field(entry)
            fields.append((name, ascending if direction is None else direction))

        failures: List[SortKeyError] = []

        def compare(t1: T, t2: T) -> int:
            try:
                for name, asc in fields:
                    v1 = self._extractor.extract_or_none(t1, name)
                    v2 = self._extractor.extract_or_none(t2, name)
                    result = compare_values(v1, v2, asc)
                    if result != 0:
                        return result
                return 0
            except SortKeyError as e:
                if self._strict:
                    raise
                failures.append(e)
                return 0

        ordered = sorted(items, key=cmp_to_key(compare))
        if failures:
            logger.warning(
                "sort: %d comparisons treated as equal, fields=%s first_error=%s",
                len(failures), sort_fields, failures[0])
        return ordered


def sort_and_page(
    items: Sequence[T],
    pfs: PfsParameter | None,
    *,
    strict: bool = False,
    extractor: SortKeyExtractor | None = None) -> Tuple[List[T], int]:
    """ListPager 단발 호출용."""
    return ListPager(extractor=extractor, strict=strict).sort_and_page(items, pfs)
