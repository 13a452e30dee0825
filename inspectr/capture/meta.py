"""
Request and response metadata extraction.

Pure functions over an ASGI scope and a completed ResponseTap. Nothing here
reads from or writes to the connection.
"""
from datetime import datetime
from http import HTTPStatus
from typing import Any, Dict, Iterable, Tuple
from urllib.parse import parse_qsl, urlsplit

from starlette.datastructures import Headers

from ..models import HeaderValue, utc_timestamp
from .tap import ResponseTap


def headers_to_dict(raw_headers: Iterable[Tuple[bytes, bytes]]) -> Dict[str, HeaderValue]:
    """Lower-cased header names; a repeated header becomes a list of its values."""
    headers: Dict[str, HeaderValue] = {}
    for raw_name, raw_value in raw_headers:
        name = raw_name.decode("latin-1").lower()
        value = raw_value.decode("latin-1")
        if name not in headers:
            headers[name] = value
        elif isinstance(headers[name], list):
            headers[name].append(value)
        else:
            headers[name] = [headers[name], value]
    return headers


def _raw_target(scope: Dict[str, Any]) -> str:
    """Path plus query string exactly as the client sent it."""
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
    # Some servers keep the query in raw_path
    path = path.split("?", 1)[0]
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def parse_url(scope: Dict[str, Any]) -> str:
    """Absolute URL of the request: protocol, host and raw path."""
    headers = Headers(scope=scope)
    protocol = scope.get("scheme") or headers.get("x-forwarded-protocol") or "http"
    host = headers.get("host")
    if not host:
        server = scope.get("server")
        host = f"{server[0]}:{server[1]}" if server else "localhost"
    return f"{protocol}://{host}{_raw_target(scope)}"


def client_ip(scope: Dict[str, Any]) -> str:
    forwarded_for = Headers(scope=scope).get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for
    client = scope.get("client")
    return client[0] if client else ""


def parse_request_meta(scope: Dict[str, Any], arrived_at: datetime | None = None) -> Dict[str, Any]:
    """
    Extract request metadata from an ASGI HTTP scope.

    Returns:
        dict with method, headers, host, client_ip, path, query_params, timestamp
    """
    url = urlsplit(parse_url(scope))
    return {
        "method": scope.get("method", "GET").upper(),
        "headers": headers_to_dict(scope.get("headers", [])),
        "host": Headers(scope=scope).get("host", url.netloc),
        "client_ip": client_ip(scope),
        "path": url.path,
        # Repeated keys: the last value wins
        "query_params": dict(parse_qsl(url.query, keep_blank_values=True)),
        "timestamp": utc_timestamp(arrived_at),
    }


def status_text(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def parse_response_meta(tap: ResponseTap) -> Dict[str, Any]:
    """
    Extract response metadata from a tap.

    Call only once ``tap.completed`` has resolved; headers are taken from the
    start message as it was actually sent.
    """
    return {
        "headers": headers_to_dict(tap.raw_headers),
        "status_code": tap.status_code,
        "status_message": status_text(tap.status_code),
    }
