import pytest
from pydantic import ValidationError

from refset_server.app.domain.models import (
    HandlerResult,
    PfsParameter,
    QueryParameter,
    RANDOM,
    ResultList,
    split_sort_field,
)


def test_pfs_defaults():
    """
    기본값은 페이징 없음(limit=-1, offset=0), 오름차순.
    """
    pfs = PfsParameter()
    assert pfs.limit == -1
    assert pfs.offset == 0
    assert pfs.sort is None
    assert pfs.sort_fields == []
    assert pfs.ascending is True


@pytest.mark.parametrize("field", ["limit", "offset"])
def test_pfs_rejects_below_minus_one(field):
    with pytest.raises(ValidationError):
        PfsParameter(**{field: -2})


def test_pfs_copy_is_independent():
    pfs = PfsParameter(sort_fields=["name"])
    copy = pfs.model_copy(deep=True)
    copy.sort_fields.append("rank")
    assert pfs.sort_fields == ["name"]


def test_effective_sort_fields_and_random():
    assert PfsParameter(sort="a", sort_fields=["b"]).effective_sort_fields() == ["a"]
    assert PfsParameter(sort_fields=["b", "c"]).effective_sort_fields() == ["b", "c"]
    assert PfsParameter(sort_fields=["b", RANDOM]).is_random()
    assert not PfsParameter(sort="name").is_random()


def test_split_sort_field():
    assert split_sort_field("name") == ("name", None)
    assert split_sort_field("name desc") == ("name", False)
    assert split_sort_field(" name asc ") == ("name", True)


def test_query_parameter_defaults():
    q = QueryParameter()
    assert q.query is None
    assert q.fielded_clauses == {}
    assert q.additional_clauses == set()


def test_result_list_window_checks():
    rl = ResultList[str](items=["a", "b"], total=10, limit=2, offset=4)
    assert len(rl.items) == 2

    with pytest.raises(ValidationError):
        ResultList[str](items=["a", "b"], total=1)
    with pytest.raises(ValidationError):
        ResultList[str](items=["a", "b"], total=5, limit=1)


def test_handler_result_total_non_negative():
    with pytest.raises(ValidationError):
        HandlerResult[str](items=[], total=-1)


def test_result_list_unpaged_window_ignores_limit():
    """
    offset=-1 이면 limit과 무관하게 전체 목록을 담을 수 있다.
    """
    rl = ResultList[str](items=["a", "b", "c"], total=3, limit=1, offset=-1)
    assert rl.items == ["a", "b", "c"]
    assert (rl.offset, rl.limit) == (-1, 1)
