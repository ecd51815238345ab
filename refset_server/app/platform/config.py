from typing import Any, Dict

from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

load_dotenv()

DEFAULT_HANDLER_CLASS = (
    "refset_server.app.adapters.searchers.default_search_handler.DefaultSearchHandler"
)

class Settings(BaseSettings):
    APP_NAME: str = "refset-search-api"
    DEBUG: bool = False

    OPENSEARCH_HOST: str = "http://opensearch:9200"
    # 엔티티 인덱스 이름 앞에 붙는 접두사 (ex. refset-refsets)
    OPENSEARCH_INDEX_PREFIX: str = "refset"

    # 검색 핸들러 구성: 이름 -> {"class": 점 경로, 나머지는 핸들러 속성}
    SEARCH_HANDLERS: Dict[str, Dict[str, Any]] = Field(
        default_factory=lambda: {"DEFAULT": {"class": DEFAULT_HANDLER_CLASS}}
    )
    SEARCH_TIMEOUT_SECONDS: float = 30.0
    SEARCH_MAX_RESULTS: int = 10000
    STRICT_SORT: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_AS_JSON: bool = True
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "/var/log/app"

    def general_properties(self) -> Dict[str, Any]:
        """모든 핸들러가 공통으로 받는 속성."""
        return {
            "general.index_prefix": self.OPENSEARCH_INDEX_PREFIX,
            "general.request_timeout": self.SEARCH_TIMEOUT_SECONDS,
            "general.max_results": self.SEARCH_MAX_RESULTS,
        }

settings = Settings()
