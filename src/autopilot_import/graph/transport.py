"""Thin urllib transport shared by the token and Graph clients."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..exceptions import GraphRequestError

USER_AGENT = "AutopilotImport/1.0.0"

# urlopen-compatible callable; swapped out in tests
Opener = Callable[..., Any]


def _parse_error_body(raw: bytes) -> Tuple[Optional[str], str]:
    """Extract (code, message) from a Graph or identity-platform error body."""
    text = raw.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text)
    except ValueError:
        return None, text

    if not isinstance(data, dict):
        return None, text

    error = data.get("error")
    if isinstance(error, dict):
        return error.get("code"), error.get("message") or text
    if isinstance(error, str):
        return error, data.get("error_description") or error
    return None, text


def send_request(
    request: Request,
    timeout_seconds: int,
    opener: Opener = urlopen,
) -> Tuple[int, Dict[str, Any]]:
    """Send ``request`` and decode the JSON response.

    Returns:
        Tuple of (status, response_data); response_data is empty for bodiless replies

    Raises:
        GraphRequestError: HTTP error status, network failure or undecodable body
    """
    request.add_header("User-Agent", USER_AGENT)
    request.add_header("Accept", "application/json")

    try:
        with opener(request, timeout=timeout_seconds) as response:
            body = response.read()
            status = response.status
    except HTTPError as e:
        code, message = _parse_error_body(e.read() or b"")
        raise GraphRequestError(f"HTTP {e.code} {e.reason}: {message}", status=e.code, code=code) from e
    except URLError as e:
        raise GraphRequestError(f"Network error: {e.reason}") from e
    except OSError as e:
        raise GraphRequestError(f"Request error: {e}") from e

    if not body:
        return status, {}

    try:
        data = json.loads(body.decode("utf-8"))
    except ValueError as e:
        raise GraphRequestError(f"Invalid JSON in response (HTTP {status}): {e}", status=status) from e

    if not isinstance(data, dict):
        raise GraphRequestError(f"Unexpected response shape (HTTP {status})", status=status)

    return status, data
