"""
정렬 키 추출기.

"edition.organization.name" 같은 점 경로를 왼쪽부터 차례로 풀어
정렬에 쓸 값을 꺼낸다. 엔티티 타입별로 추출 함수를 미리 등록할 수 있고,
등록되지 않은 경로만 속성/게터 탐색으로 해석한다.
"""

from __future__ import annotations

import inspect
import logging
import re
import types
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Tuple, Union, get_args, get_origin

from refset_server.app.platform.exceptions import (
    MissingAccessor,
    NullIntermediate,
    UnsupportedSortType,
)

logger = logging.getLogger(__name__)

Accessor = Callable[[Any], Any]

SORTABLE_TYPES = (str, Enum, int, datetime, date)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_MISSING = object()


def to_snake(segment: str) -> str:
    """lastName -> last_name"""
    return _CAMEL_BOUNDARY.sub("_", segment).lower()


def is_sortable(value: Any) -> bool:
    if value is None:
        return True
    # bool은 int의 하위 타입이지만 정렬 키로 허용하지 않는다
    if isinstance(value, bool):
        return False
    return isinstance(value, SORTABLE_TYPES)


def _candidate_names(segment: str) -> list[str]:
    snake = to_snake(segment)
    names = [segment, snake, f"get_{snake}", "get" + segment[:1].upper() + segment[1:]]
    return list(dict.fromkeys(names))


def _resolve_segment(obj: Any, segment: str, field_path: str) -> Any:
    for name in _candidate_names(segment):
        value = getattr(obj, name, _MISSING)
        if value is _MISSING:
            continue
        if inspect.ismethod(value):
            return value()
        return value
    raise MissingAccessor(field_path, segment, type(obj))


def _unwrap_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        return args[0] if len(args) == 1 else Any
    return annotation


class SortKeyExtractor:
    """
    점 경로 정렬 키 추출기.

    예시:
        extractor = SortKeyExtractor()
        extractor.register(Refset, "edition.name", lambda r: r.edition.name if r.edition else None)
        extractor.extract(refset, "edition.name")
    """

    def __init__(self) -> None:
        self._accessors: Dict[Tuple[type, str], Accessor] = {}

    def register(self, entity_type: type, field_path: str, accessor: Accessor) -> None:
        """엔티티 타입의 정렬 경로에 추출 함수를 등록한다."""
        self._accessors[(entity_type, field_path)] = accessor

    def accessor_for(self, entity_type: type, field_path: str) -> Accessor | None:
        for klass in entity_type.__mro__:
            accessor = self._accessors.get((klass, field_path))
            if accessor is not None:
                return accessor
        return None

    def extract(self, obj: Any, field_path: str) -> Any:
        """
        정렬 값을 꺼낸다.
        Args:
            obj: 대상 객체
            field_path: 점으로 구분된 경로(ex. edition.organization.name)
        Returns:
            Any: str, Enum, int, date/datetime 또는 None
        Raises:
            MissingAccessor: 경로 조각에 해당하는 접근자가 없음
            NullIntermediate: 중간 값이 None
            UnsupportedSortType: 최종 값의 타입이 정렬 불가
        """
        accessor = self.accessor_for(type(obj), field_path)
        if accessor is not None:
            value = accessor(obj)
        else:
            value = self._resolve_path(obj, field_path)

        if not is_sortable(value):
            raise UnsupportedSortType(field_path, type(value))
        return value

    def extract_or_none(self, obj: Any, field_path: str) -> Any:
        """중간 값이 None이면 정렬 값도 None으로 본다."""
        try:
            return self.extract(obj, field_path)
        except NullIntermediate:
            return None

    def validate(self, entity_type: type, field_paths: Iterable[str]) -> None:
        """
        정렬 경로를 설정 시점에 검증한다.
        pydantic 모델은 필드 타입을 따라가며 확인하고,
        타입 정보를 알 수 없는 조각(게터 메서드 등)은 통과시킨다.
        """
        for field_path in field_paths:
            if self.accessor_for(entity_type, field_path) is not None:
                continue
            current: Any = entity_type
            for segment in field_path.split("."):
                if current is Any:
                    break
                current = self._segment_type(current, segment, field_path)
            if current is Any:
                continue
            current = get_origin(current) or current
            if isinstance(current, type) and (
                issubclass(current, bool) or not issubclass(current, SORTABLE_TYPES)
            ):
                raise UnsupportedSortType(field_path, current)

    # ================= internal helpers =================
    def _resolve_path(self, obj: Any, field_path: str) -> Any:
        segments = field_path.split(".")
        current = obj
        for i, segment in enumerate(segments):
            if current is None:
                raise NullIntermediate(field_path, segments[i - 1])
            current = _resolve_segment(current, segment, field_path)
        return current

    def _segment_type(self, owner: type, segment: str, field_path: str) -> Any:
        fields = getattr(owner, "model_fields", None)
        if fields is not None:
            for name in (segment, to_snake(segment)):
                if name in fields:
                    return _unwrap_optional(fields[name].annotation)
        for name in _candidate_names(segment):
            if hasattr(owner, name):
                return Any
        raise MissingAccessor(field_path, segment, owner)
