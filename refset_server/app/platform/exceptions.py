class DomainError(Exception):
    """도메인/유즈케이스 공통 베이스 예외"""
    pass

class ResourceNotFound(DomainError):
    def __init__(self, resource: str, detail: str | None = None):
        super().__init__(detail or f"{resource} not found")
        self.resource = resource

class InvalidInput(DomainError):
    def __init__(self, message: str):
        super().__init__(message)

class QueryParseError(DomainError):
    """검색 인덱스가 쿼리 문법을 해석하지 못한 경우."""
    def __init__(self, query: str, reason: str | None = None):
        super().__init__(f"Unable to parse query: {query}" + (f" ({reason})" if reason else ""))
        self.query = query
        self.reason = reason

# ---- 정렬 키 추출 ----
class SortKeyError(DomainError):
    def __init__(self, field_path: str, message: str):
        super().__init__(message)
        self.field_path = field_path

class MissingAccessor(SortKeyError):
    def __init__(self, field_path: str, segment: str, owner: type):
        super().__init__(
            field_path,
            f"Missing accessor '{segment}' on {owner.__name__} for sort field {field_path}")
        self.segment = segment

class NullIntermediate(SortKeyError):
    def __init__(self, field_path: str, segment: str):
        super().__init__(
            field_path,
            f"Null value at '{segment}' while resolving sort field {field_path}")
        self.segment = segment

class UnsupportedSortType(SortKeyError):
    def __init__(self, field_path: str, value_type: type):
        super().__init__(
            field_path,
            f"Requested sort field value is not text, enum, integer or date value: "
            f"{value_type.__name__} ({field_path})")
        self.value_type = value_type

class AmbiguousResultError(DomainError):
    def __init__(self, count: int, detail: str | None = None):
        super().__init__(detail or f"More than one object returned for the query - {count}")
        self.count = count

class HandlerNotFoundError(DomainError):
    def __init__(self, name: str, detail: str | None = None):
        super().__init__(detail or f"Unexpected missing search handler name = {name}")
        self.name = name
