# refset_server/tests/unit/adapters/searchers/test_default_search_handler.py

from unittest.mock import MagicMock
import pytest
from opensearchpy.exceptions import RequestError, ConnectionError

from refset_server.app.adapters.searchers.default_search_handler import (
    DefaultSearchHandler,
    is_parse_error,
    normalize_score,
    split_date_clauses,
)
from refset_server.app.domain.entities import Refset
from refset_server.app.domain.models import PfsParameter, QueryParameter, RANDOM
from refset_server.app.domain.query_composer import MATCH_ALL
from refset_server.app.platform.exceptions import QueryParseError


def os_response(hits, total=None):
    return {
        "hits": {
            "total": {"value": len(hits) if total is None else total, "relation": "eq"},
            "hits": hits,
        }
    }


def refset_hit(_id, name, score=1.0, **extra):
    return {"_id": _id, "_score": score, "_source": {"refset_id": _id.upper(), "name": name, **extra}}


def parse_error(reason="Failed to parse query [heart (]"):
    return RequestError(
        400,
        "search_phase_execution_exception",
        {
            "error": {
                "root_cause": [{"type": "query_shard_exception", "reason": reason}],
                "type": "search_phase_execution_exception",
                "reason": "all shards failed",
            }
        },
    )


@pytest.fixture
def mock_client():
    c = MagicMock()
    c.search.return_value = os_response([])
    return c


@pytest.fixture
def handler(mock_client):
    return DefaultSearchHandler(client=mock_client, properties={"general.index_prefix": "test"})


def test_build_body_basic_structure(handler):
    body = handler.build_body("heart", Refset, PfsParameter(offset=10, limit=5, sort="name", ascending=False))

    qs = body["query"]["query_string"]
    assert qs == {"query": "heart", "default_operator": "AND", "analyze_wildcard": True}
    assert body["track_total_hits"] is True
    assert body["from"] == 10
    assert body["size"] == 5
    assert body["sort"] == [{"name.keyword": {"order": "desc"}}]
    assert "_source" not in body


def test_build_body_without_pfs_uses_max_results(handler):
    body = handler.build_body(MATCH_ALL, Refset, None)
    assert body["from"] == 0
    assert body["size"] == 10000
    assert "sort" not in body


def test_build_body_caps_size_and_unbounded_limit(mock_client):
    h = DefaultSearchHandler(mock_client, {"max_results": 50})
    assert h.build_body("x", Refset, PfsParameter(offset=0, limit=500))["size"] == 50
    body = h.build_body("x", Refset, PfsParameter(offset=20, limit=-1))
    assert body["from"] == 20
    assert body["size"] == 50
    assert h.build_body("x", Refset, PfsParameter(offset=-1, limit=5))["from"] == 0


def test_build_body_per_field_direction(handler):
    pfs = PfsParameter(sort_fields=["member_count desc", "name"], ascending=True)
    body = handler.build_body("x", Refset, pfs)
    assert body["sort"] == [
        {"member_count": {"order": "desc"}},
        {"name.keyword": {"order": "asc"}},
    ]


def test_build_body_random(handler):
    body = handler.build_body("x", Refset, PfsParameter(sort_fields=["name", RANDOM]))
    fs = body["query"]["function_score"]
    assert fs["random_score"] == {}
    assert fs["query"]["query_string"]["query"] == "x"
    assert "sort" not in body


def test_build_body_modes(handler):
    ids = handler.build_body("x", Refset, PfsParameter(limit=3), mode="id")
    assert ids["_source"] is False
    count = handler.build_body("x", Refset, PfsParameter(limit=3), mode="count")
    assert count["size"] == 0
    assert "from" not in count
    assert "sort" not in count


def test_configure_own_key_overrides_general(mock_client):
    h = DefaultSearchHandler(mock_client)
    h.configure({"general.index_prefix": "g", "general.request_timeout": 30, "general.max_results": 100})
    assert h.index_for(Refset) == "g-refsets"
    assert h.request_timeout == 30.0
    assert h.max_results == 100

    h.configure({"index_prefix": "own", "max_results": 7})
    assert h.index_for(Refset) == "own-refsets"
    assert h.max_results == 7


def test_index_without_prefix(mock_client):
    assert DefaultSearchHandler(mock_client).index_for(Refset) == "refsets"


def test_get_query_results_maps_entities_and_scores(handler, mock_client):
    """
    _id를 엔티티 id로 쓰고, 점수는 min(5, score)/5로 정규화된다.
    """
    mock_client.search.return_value = os_response(
        [refset_hit("a", "Alpha", score=10.0), refset_hit("b", "Beta", score=2.5)], total=42)

    result = handler.get_query_results(QueryParameter(query="alpha"), Refset, PfsParameter(limit=2))

    assert [r.id for r in result.items] == ["a", "b"]
    assert result.items[0].refset_id == "A"
    assert result.total == 42
    assert result.score_map == {"a": 1.0, "b": 0.5}

    _, kwargs = mock_client.search.call_args
    assert kwargs["index"] == "test-refsets"
    assert kwargs["body"]["query"]["query_string"]["query"] == "alpha"


def test_get_query_results_skips_invalid_documents(handler, mock_client):
    mock_client.search.return_value = os_response(
        [
            refset_hit("a", "Alpha"),
            {"_id": "broken", "_score": 1.0, "_source": {"name": "no refset id"}},
            {"_id": "nosource", "_score": 1.0},
        ],
        total=3,
    )
    result = handler.get_query_results(QueryParameter(), Refset, None)
    assert [r.id for r in result.items] == ["a"]
    assert result.total == 3


def test_get_id_results(handler, mock_client):
    mock_client.search.return_value = {
        "hits": {"total": {"value": 2}, "hits": [{"_id": "x", "_score": 5.0}, {"_id": "y", "_score": None}]}
    }
    result = handler.get_id_results(QueryParameter(query="x"), Refset, PfsParameter(limit=10))
    assert result.items == ["x", "y"]
    assert result.total == 2
    assert result.score_map == {"x": 1.0}
    assert mock_client.search.call_args.kwargs["body"]["_source"] is False


def test_count_query_results(handler, mock_client):
    mock_client.search.return_value = {"hits": {"total": {"value": 42, "relation": "eq"}, "hits": []}}
    assert handler.count_query_results(QueryParameter(fielded_clauses={"active": "true"}), Refset, None) == 42
    body = mock_client.search.call_args.kwargs["body"]
    assert body["size"] == 0
    assert body["query"]["query_string"]["query"] == "active:true"


def test_null_query_is_match_all(handler, mock_client):
    handler.count_query_results(QueryParameter(), Refset, None)
    body = mock_client.search.call_args.kwargs["body"]
    assert body["query"]["query_string"]["query"] == MATCH_ALL


def test_request_timeout_is_passed(mock_client):
    h = DefaultSearchHandler(mock_client, {"request_timeout": 5})
    h.count_query_results(QueryParameter(), Refset, None)
    assert mock_client.search.call_args.kwargs["request_timeout"] == 5.0


def test_parse_error_retries_with_literal(handler, mock_client):
    """
    파싱 실패 시 리터럴 구문 쿼리로 한 번 더 시도한다.
    """
    mock_client.search.side_effect = [parse_error(), os_response([refset_hit("a", "Alpha")])]

    result = handler.get_query_results(
        QueryParameter(query="heart (", fielded_clauses={"active": "true"}), Refset, None)

    assert [r.id for r in result.items] == ["a"]
    assert mock_client.search.call_count == 2
    first = mock_client.search.call_args_list[0].kwargs["body"]["query"]["query_string"]["query"]
    second = mock_client.search.call_args_list[1].kwargs["body"]["query"]["query_string"]["query"]
    assert first == "(heart () AND active:true"
    assert second == '"heart \\(" AND active:true'


def test_parse_error_twice_propagates(handler, mock_client):
    mock_client.search.side_effect = [parse_error(), parse_error()]
    with pytest.raises(QueryParseError):
        handler.get_query_results(QueryParameter(query="heart ("), Refset, None)
    assert mock_client.search.call_count == 2


def test_parse_error_without_free_text_is_not_retried(handler, mock_client):
    mock_client.search.side_effect = parse_error()
    with pytest.raises(QueryParseError):
        handler.count_query_results(QueryParameter(additional_clauses={"name:(("}), Refset, None)
    assert mock_client.search.call_count == 1


def test_other_request_error_propagates_without_retry(handler, mock_client):
    err = RequestError(
        400,
        "search_phase_execution_exception",
        {"error": {"root_cause": [{"type": "illegal_argument_exception",
                                   "reason": "No mapping found for [nosuch] in order to sort on"}],
                   "type": "search_phase_execution_exception"}},
    )
    mock_client.search.side_effect = err
    with pytest.raises(RequestError):
        handler.get_query_results(QueryParameter(query="heart"), Refset, PfsParameter(sort="nosuch"))
    assert mock_client.search.call_count == 1


def test_connection_error_propagates(handler, mock_client):
    mock_client.search.side_effect = ConnectionError("N/A", "down", Exception("down"))
    with pytest.raises(ConnectionError):
        handler.get_query_results(QueryParameter(query="heart"), Refset, None)
    assert mock_client.search.call_count == 1


def test_is_parse_error():
    assert is_parse_error(parse_error())
    assert is_parse_error(RequestError(400, "parse_exception", {"error": {"type": "parse_exception"}}))
    assert not is_parse_error(RequestError(400, "illegal_argument_exception", {"error": "bad sort"}))


def test_date_clause_lifted_into_range(handler, mock_client):
    """
    날짜 필드의 field:YYYY-MM-DD 절은 range 쿼리로 바뀐다.
    """
    handler.count_query_results(
        QueryParameter(query="heart", fielded_clauses={"version_date": "2021-07-31"}), Refset, None)
    query = mock_client.search.call_args.kwargs["body"]["query"]
    must = query["bool"]["must"]
    assert must[0]["query_string"]["query"] == "(heart)"
    assert must[1] == {
        "range": {"version_date": {"gte": "2021-07-31", "lte": "2021-07-31", "format": "yyyy-MM-dd"}}
    }


def test_split_date_clauses():
    remaining, ranges = split_date_clauses("version_date:2021\\-07\\-31", {"version_date"})
    assert remaining == MATCH_ALL
    assert len(ranges) == 1

    remaining, ranges = split_date_clauses("name:x AND modified:2020-01-02", {"modified"})
    assert remaining == "name:x"
    assert ranges[0]["range"]["modified"]["gte"] == "2020-01-02"

    assert split_date_clauses("name:2020-01-02", {"modified"}) == ("name:2020-01-02", [])
    assert split_date_clauses("x", set()) == ("x", [])


def test_normalize_score():
    assert normalize_score(10) == 1.0
    assert normalize_score(2.5) == 0.5
    assert normalize_score(0) == 0.0


def test_split_date_clauses_leaves_nested_date_field():
    """
    edition.modified 처럼 중첩 경로의 날짜 필드는 최상위 modified로 바꾸지 않는다.
    """
    query = "edition.modified:2020-01-01 AND name:x"
    assert split_date_clauses(query, {"modified"}) == (query, [])

    remaining, ranges = split_date_clauses(
        "edition.modified:2020-01-01 AND modified:2020-02-02", {"modified"})
    assert remaining == "edition.modified:2020-01-01"
    assert ranges == [
        {"range": {"modified": {"gte": "2020-02-02", "lte": "2020-02-02", "format": "yyyy-MM-dd"}}}
    ]
