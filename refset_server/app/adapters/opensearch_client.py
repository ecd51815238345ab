import threading
from urllib.parse import urlparse

from opensearchpy import OpenSearch
from refset_server.app.platform.config import settings

_client: OpenSearch | None = None
_lock = threading.Lock()

def create_client(host: str) -> OpenSearch:
    """http://host:port 형태의 주소로 OpenSearch 클라이언트를 만든다."""
    u = urlparse(host)
    return OpenSearch(
        hosts=[{"host": u.hostname, "port": u.port or 9200, "scheme": u.scheme or "http"}],
        verify_certs=False,
    )

def get_client() -> OpenSearch:
    global _client
    if _client is None:
        with _lock:
            if _client is None:
                _client = create_client(settings.OPENSEARCH_HOST)
    return _client

def close_client():
    global _client
    with _lock:
        if _client:
            _client.close()
            _client = None
