# src/aegis/tests/utils/envelope.py
from __future__ import annotations

from typing import Any

import httpx


def data_of(resp: httpx.Response, status_code: int = 200) -> Any:
    """Assert a success envelope and hand back its ``data``."""
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert body["success"] is True, body
    return body["data"]


def error_of(resp: httpx.Response, status_code: int) -> str:
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert body == {"success": False, "data": None, "message": body["message"]}
    return body["message"]
