# app/platform/logging.py
import os
import json
import logging
import logging.config
from contextvars import ContextVar
from datetime import datetime, timezone

# ===== Request ID =====
request_id_ctx = ContextVar("request_id", default="-")

# 요청 단위 접근 로그(RequestContextMiddleware가 기록)
ACCESS_LOGGER = "refset.access"

# extra={...}로 넘기는 구조화 필드
HTTP_FIELDS = ("http_method", "path", "status_code", "duration_ms")
SEARCH_FIELDS = ("handler", "index", "entity", "total", "took_ms")

class RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True

# ===== JSON Formatter =====
class JsonFormatter(logging.Formatter):
    """
    JSON 라인 출력: Logstash에서 바로 파싱 가능.
    접근 로그 필드는 "http", 검색 로그 필드는 "search" 아래에 묶는다.

    예시:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "search: ...",
         "request_id": "6f1c...", "search": {"handler": "DEFAULT", "index": "refset-refsets",
         "total": 3, "took_ms": 4.2}}
    """
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        for group, keys in (("http", HTTP_FIELDS), ("search", SEARCH_FIELDS)):
            fields = {k: getattr(record, k) for k in keys if getattr(record, k, None) is not None}
            if fields:
                payload[group] = fields

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

# ===== Text Formatter (로컬 확인용) =====
TEXT_DEFAULT = "%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s"
TEXT_ACCESS = "%(asctime)s %(levelname)s [access] [%(request_id)s] %(message)s"

def _handler_config(formatter: str, level: str, filename: str | None = None) -> dict:
    if filename is None:
        config = {"class": "logging.StreamHandler"}
    else:
        config = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": filename,
            "when": "midnight",
            "backupCount": 14,
            "encoding": "utf-8",
        }
    config.update({"level": level, "formatter": formatter, "filters": ["request_id"]})
    return config

def build_logging_config(
    *,
    log_to_file: bool = False,
    log_dir: str = "/var/log/app",
    as_json: bool = True,
    level: str = "INFO",
) -> dict:
    """
    dictConfig 설정을 만든다.
    - app 로그: root, uvicorn.error
    - access 로그: refset.access (uvicorn.access는 중복이라 WARNING 이상만)
    - opensearch-py 요청 로그는 WARNING 이상만 (검색 로그가 handler/index/took_ms를 남김)
    """
    app_fmt = "json" if as_json else "text_default"
    access_fmt = "json" if as_json else "text_access"

    handlers = {
        "console_app": _handler_config(app_fmt, level),
        "console_access": _handler_config(access_fmt, level),
    }
    app_handlers = ["console_app"]
    access_handlers = ["console_access"]
    if log_to_file:
        handlers["file_app"] = _handler_config(app_fmt, level, f"{log_dir}/app.log")
        handlers["file_access"] = _handler_config(access_fmt, level, f"{log_dir}/access.log")
        app_handlers.append("file_app")
        access_handlers.append("file_access")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIDFilter}},
        "formatters": {
            "json": {"()": JsonFormatter},
            "text_default": {"format": TEXT_DEFAULT},
            "text_access": {"format": TEXT_ACCESS},
        },
        "handlers": handlers,
        "loggers": {
            "": {"handlers": app_handlers, "level": level, "propagate": False},
            "uvicorn.error": {"handlers": app_handlers, "level": level, "propagate": False},
            "uvicorn.access": {"handlers": access_handlers, "level": "WARNING", "propagate": False},
            ACCESS_LOGGER: {"handlers": access_handlers, "level": level, "propagate": False},
            "opensearch": {"level": "WARNING"},
        },
    }

def setup_logging(
    *,
    log_to_file: bool = False,
    log_dir: str = "/var/log/app",
    as_json: bool = True,
    level: str = "INFO",
) -> None:
    os.environ.setdefault("TZ", "UTC")  # 타임존 명시 (로그 일관성)
    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(
        log_to_file=log_to_file, log_dir=log_dir, as_json=as_json, level=level))
