"""Response error extraction for load test observability.

Parses checkout API error responses into human-readable messages.
Handles three response shapes:

- Request validation (400): {"error": "Validation Error", "details": [{"loc": [...], "msg": "..."}]}
- Checkout rejections (400/502): {"error": "<Category>", "kind": "...", "message": "..."}
- Settlement rejections (400/404) and Protean errors: {"error": "msg"} or {"error": {"field": ["msg"]}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from locust.clients import ResponseContextManager


def extract_error_detail(response: ResponseContextManager) -> str:
    """Extract a human-readable error message from an API error response.

    Returns a compact string suitable for Locust failure messages and log lines.
    Gracefully handles unparseable bodies and missing fields.
    """
    try:
        body = response.json()
    except ValueError:
        # Not JSON, return raw text truncated
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if isinstance(body.get("details"), list):
        parts = []
        for err in body["details"]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if "kind" in body and "message" in body:
        return f"{body.get('error')} [{body['kind']}]: {body['message']}"

    if "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            return " | ".join(f"{k}: {v}" for k, v in error.items())
        return str(error)

    # Unknown shape, stringify and truncate
    return str(body)[:300]
