"""
검색 대상 엔티티.

엔티티는 인덱스 이름, 인덱스 정렬 필드 매핑, 날짜 필드만 선언한다.
검색/정렬 코어는 엔티티의 업무 의미를 알지 못하고
id 접근자와 점 경로(a.b.c) 접근자만 사용한다.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Dict, FrozenSet, Type

from pydantic import BaseModel, ConfigDict, Field

from refset_server.app.platform.exceptions import ResourceNotFound


class IndexedModel(BaseModel):
    """인덱싱된 엔티티의 공통 베이스."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="인덱스 문서 id")

    # 인덱스 이름(접두사 제외)
    index_name: ClassVar[str] = ""
    # 정렬 필드 -> 인덱스의 비분석(keyword) 필드
    sort_field_map: ClassVar[Dict[str, str]] = {}
    # field:YYYY-MM-DD 절을 range 쿼리로 바꿀 날짜 필드
    date_fields: ClassVar[FrozenSet[str]] = frozenset()

    @classmethod
    def sort_field_for(cls, field: str) -> str:
        return cls.sort_field_map.get(field, field)


class Organization(BaseModel):
    name: str
    short_name: str | None = None


class Edition(IndexedModel):
    index_name: ClassVar[str] = "editions"
    sort_field_map: ClassVar[Dict[str, str]] = {
        "name": "name.keyword",
        "shortName": "short_name",
        "short_name": "short_name",
    }
    date_fields: ClassVar[FrozenSet[str]] = frozenset({"modified"})

    name: str
    short_name: str | None = None
    branch: str | None = None
    organization: Organization | None = None
    modified: datetime | None = None


class Project(IndexedModel):
    index_name: ClassVar[str] = "projects"
    sort_field_map: ClassVar[Dict[str, str]] = {"name": "name.keyword"}
    date_fields: ClassVar[FrozenSet[str]] = frozenset({"modified"})

    name: str
    description: str | None = None
    edition: Edition | None = None
    privacy: str | None = None
    modified: datetime | None = None


class Refset(IndexedModel):
    index_name: ClassVar[str] = "refsets"
    sort_field_map: ClassVar[Dict[str, str]] = {
        "name": "name.keyword",
        "refsetId": "refset_id",
        "refset_id": "refset_id",
    }
    date_fields: ClassVar[FrozenSet[str]] = frozenset({"version_date", "modified"})

    refset_id: str
    name: str
    active: bool = True
    version_status: str | None = None
    version_date: date | None = None
    member_count: int | None = None
    edition: Edition | None = None
    project_id: str | None = None
    modified: datetime | None = None


class MapUser(IndexedModel):
    index_name: ClassVar[str] = "map-users"
    sort_field_map: ClassVar[Dict[str, str]] = {
        "name": "name.keyword",
        "userName": "user_name",
        "user_name": "user_name",
    }

    user_name: str
    name: str | None = None
    email: str | None = None
    application_role: str | None = None


class Concept(IndexedModel):
    index_name: ClassVar[str] = "concepts"
    sort_field_map: ClassVar[Dict[str, str]] = {"name": "name.keyword"}

    code: str
    name: str
    active: bool = True
    defined: bool = False
    terminology: str | None = None


ENTITY_TYPES: Dict[str, Type[IndexedModel]] = {
    "refset": Refset,
    "edition": Edition,
    "project": Project,
    "map-user": MapUser,
    "concept": Concept,
}


def resolve_entity_type(name: str) -> Type[IndexedModel]:
    """
    공개 이름으로 엔티티 클래스를 찾는다.
    Args:
        name: str (ex. refset, edition)
    Returns:
        Type[IndexedModel]: 엔티티 클래스
    """
    try:
        return ENTITY_TYPES[name.lower()]
    except KeyError:
        raise ResourceNotFound("entity type", f"Unknown entity type: {name}") from None
