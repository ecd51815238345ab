"""
검색 핸들러 레지스트리.

설정(SEARCH_HANDLERS)에 선언된 이름 -> 핸들러 클래스를 한 번만 생성해
읽기 전용 매핑으로 보관한다. "DEFAULT" 핸들러가 없으면 생성 단계에서 실패한다.

설정 예시:
    SEARCH_HANDLERS='{"DEFAULT": {"class": "pkg.module.DefaultSearchHandler", "max_results": 5000}}'
"""

from __future__ import annotations

import importlib
import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, Mapping

from refset_server.app.domain.ports import SearchHandler
from refset_server.app.platform.exceptions import HandlerNotFoundError

logger = logging.getLogger(__name__)

DEFAULT = "DEFAULT"


def load_class(class_path: str) -> type:
    """
    점 경로로 클래스를 불러온다.
    Args:
        class_path: "package.module.ClassName"
    Returns:
        type: 클래스
    """
    module_name, _, attr = class_path.rpartition(".")
    if not module_name:
        raise HandlerNotFoundError(class_path, f"Handler class {class_path} is not a dotted path")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise HandlerNotFoundError(class_path, f"Unable to import {module_name}: {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError:
        raise HandlerNotFoundError(
            class_path, f"Unable to find class {attr} in {module_name}") from None


class SearchHandlerRegistry(Mapping[str, SearchHandler]):
    """생성 후 변경되지 않는 이름 -> 핸들러 매핑."""

    def __init__(self, handlers: Mapping[str, SearchHandler]) -> None:
        if DEFAULT not in handlers:
            raise HandlerNotFoundError(
                DEFAULT, f"search handler {DEFAULT} expected and does not exist")
        self._handlers: Mapping[str, SearchHandler] = MappingProxyType(dict(handlers))

    @classmethod
    def build(
        cls,
        client: Any,
        config: Mapping[str, Mapping[str, Any]],
        general: Mapping[str, Any] | None = None) -> "SearchHandlerRegistry":
        """
        설정으로부터 핸들러를 생성/구성한다.

        Args:
            client: 핸들러 생성자에 넘길 검색 클라이언트
            config: 핸들러 이름 -> {"class": 점 경로, 나머지 핸들러 속성}
            general: 모든 핸들러에 넘길 공통 속성(general.*)
        Returns:
            SearchHandlerRegistry
        """
        handlers: Dict[str, SearchHandler] = {}
        for name, raw in config.items():
            if not name:
                continue
            properties = dict(raw)
            class_path = properties.pop("class", None)
            if not class_path:
                raise HandlerNotFoundError(name, f"Unexpected null class for search handler {name}")

            handler_cls = load_class(class_path)
            handler = handler_cls(client)
            handler.name = name
            handler.configure({**(general or {}), **properties})
            handlers[name] = handler

        logger.info("registry: search handlers=%s", sorted(handlers))
        return cls(handlers)

    def get_handler(self, name: str | None = None) -> SearchHandler:
        """
        이름으로 핸들러를 찾는다. 이름이 비어 있으면 DEFAULT.
        Raises:
            HandlerNotFoundError: 등록되지 않은 이름
        """
        key = name.strip() if name and name.strip() else DEFAULT
        try:
            return self._handlers[key]
        except KeyError:
            raise HandlerNotFoundError(key) from None

    def __getitem__(self, name: str) -> SearchHandler:
        return self._handlers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


# ---- 앱 밖(스크립트 등)에서 쓰는 지연 생성 레지스트리 ----
_registry: SearchHandlerRegistry | None = None
_registry_lock = threading.Lock()


def get_registry(factory: Callable[[], SearchHandlerRegistry]) -> SearchHandlerRegistry:
    """최초 호출 시 한 번만 factory로 생성한다(동시 호출에도 1회)."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = factory()
    return _registry


def reset_registry() -> None:
    global _registry
    with _registry_lock:
        _registry = None
