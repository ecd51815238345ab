from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from refset_server.app.api.deps import get_search_service, SearchService
from refset_server.app.domain.entities import resolve_entity_type
from refset_server.app.domain.models import PfsParameter, QueryParameter
from refset_server.app.platform.response import ok
from typing import Any, Dict, Set
import logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])

class SearchRequest(BaseModel):
    query: str | None = Field(None, description="자유 텍스트 쿼리(없으면 전체 매칭)")
    fielded_clauses: Dict[str, str] = Field(default_factory=dict, description="필드 -> 정확 매칭 값")
    additional_clauses: Set[str] = Field(default_factory=set, description="미리 구성된 쿼리 조각")
    pfs: PfsParameter | None = Field(None, description="페이징/정렬 파라미터(없으면 페이징 없음)")
    handler: str | None = Field(None, description="검색 핸들러 이름(없으면 DEFAULT)")

    def to_query(self) -> QueryParameter:
        return QueryParameter(
            query=self.query,
            fielded_clauses=self.fielded_clauses,
            additional_clauses=self.additional_clauses,
        )

class ApiResponse(BaseModel):
    """
    검색 응답
    """
    success: bool = Field(..., description="성공 여부")
    message: str = Field(..., description="결과 메시지")
    # find/ids: ResultList, total: {"total": n}, single: 엔티티 또는 null
    data: Any = Field(
        None,
        description="엔드포인트별 결과. 내부 구조는 엔드포인트에 따라 상이"
    )
    trace_id: str | None = Field(None, description="요청 id")

@router.post(
    "/{entity}",
    summary="엔티티 검색",
    description=(
        "구조화 쿼리로 엔티티를 검색합니다. `pfs`로 페이지 창과 정렬을 지정하고, "
        "`handler`로 검색 핸들러를 고릅니다."
    ),
    operation_id="findEntities",
    status_code=200,
    response_model=ApiResponse,
    responses={
        200: {
            "description": "검색 성공",
            "content": {
                "application/json": {
                    "examples": {
                        "basic": {
                            "summary": "기본 검색 예시",
                            "value": {
                                "success": True,
                                "message": "검색 성공",
                                "data": {
                                    "items": [
                                        {"id": "r1", "refset_id": "723264001", "name": "Lateralizable body structure"},
                                    ],
                                    "total": 134,
                                    "limit": 10,
                                    "offset": 0,
                                    "score_map": {"r1": 1.0},
                                    "time_taken": 42
                                },
                                "trace_id": "6f1c..."
                            }
                        }
                    }
                }
            },
        },
        400: {"description": "잘못된 쿼리/정렬 필드"},
        404: {"description": "알 수 없는 엔티티/핸들러"},
        503: {"description": "검색 엔진 연결 실패"},
    },
)
def find(entity: str, req: SearchRequest, svc: SearchService = Depends(get_search_service)):
    logger.info("SearchRequest: entity=%s req=%s", entity, req)
    entity_type = resolve_entity_type(entity)
    result = svc.find(req.to_query(), entity_type, req.pfs, req.handler)
    return ApiResponse(**ok(result.model_dump(mode="json"), message="검색 성공"))

@router.post(
    "/{entity}/ids",
    summary="엔티티 id 검색",
    operation_id="findEntityIds",
    response_model=ApiResponse,
)
def find_ids(entity: str, req: SearchRequest, svc: SearchService = Depends(get_search_service)):
    entity_type = resolve_entity_type(entity)
    result = svc.find_ids(req.to_query(), entity_type, req.pfs, req.handler)
    return ApiResponse(**ok(result.model_dump(mode="json"), message="검색 성공"))

@router.post(
    "/{entity}/total",
    summary="매칭 건수",
    operation_id="countEntities",
    response_model=ApiResponse,
)
def find_total(entity: str, req: SearchRequest, svc: SearchService = Depends(get_search_service)):
    entity_type = resolve_entity_type(entity)
    total = svc.find_total(req.to_query(), entity_type, req.pfs, req.handler)
    return ApiResponse(**ok({"total": total}, message="검색 성공"))

@router.post(
    "/{entity}/single",
    summary="단건 검색",
    description="정확히 한 건을 기대하는 검색입니다. 두 건 이상 매칭되면 409를 반환합니다.",
    operation_id="findSingleEntity",
    response_model=ApiResponse,
    responses={409: {"description": "두 건 이상 매칭"}},
)
def find_single(entity: str, req: SearchRequest, svc: SearchService = Depends(get_search_service)):
    entity_type = resolve_entity_type(entity)
    item = svc.find_single(req.to_query(), entity_type, req.handler)
    data = item.model_dump(mode="json") if item is not None else None
    return ApiResponse(**ok(data, message="검색 성공"))
