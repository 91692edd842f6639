from typing import Iterable, Mapping

from fastapi import Request

from config import settings

UNKNOWN_CLIENT = "unknown"


def client_key_from_headers(headers: Mapping[str, str], header_names: Iterable[str]) -> str:
    """Return the client identifier supplied by the fronting proxy.

    The first header in `header_names` that carries a value wins. Forwarded
    chains ("client, proxy1, proxy2") resolve to their first hop. Requests
    without any of the headers share the "unknown" bucket.
    """
    for name in header_names:
        value = (headers.get(name) or "").strip()
        if not value:
            continue
        first_hop = value.split(",")[0].strip()
        if first_hop:
            return first_hop
    return UNKNOWN_CLIENT


def get_client_key(request: Request) -> str:
    """FastAPI dependency; override it where the proxy uses other headers."""
    return client_key_from_headers(request.headers, settings.client_ip_headers)
