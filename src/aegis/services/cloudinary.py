# src/aegis/services/cloudinary.py
"""
Signed image uploads to Cloudinary.

Cloudinary authenticates an upload by a SHA-1 signature over the sorted,
``&``-joined upload parameters followed by the API secret. ``api_key``,
``file`` and ``signature`` itself are never part of the signed string.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import time
from typing import Mapping, Optional

import httpx
from fastapi import Request

from aegis.app_logger import get_logger
from aegis.core.config import Settings, settings as default_settings
from aegis.errors import BadRequest, InternalError

log = get_logger("cloudinary")

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/image/upload"
DEFAULT_FOLDER = "profile_pictures"
TRANSFORMATION = "c_fill,w_300,h_300,f_auto,q_auto"
_UNSIGNED = frozenset({"api_key", "signature", "file"})


def sign_params(params: Mapping[str, object], api_secret: str) -> str:
    to_sign = "&".join(
        f"{k}={params[k]}" for k in sorted(params) if k not in _UNSIGNED and params[k] is not None
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def decode_image(data: str) -> bytes:
    """Accept raw base64 or a ``data:<mime>;base64,`` URL."""
    if data.startswith("data:"):
        data = data.split(",", 1)[1] if "," in data else ""
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadRequest(f"Invalid image data: {e}") from e
    if not raw:
        raise BadRequest("Invalid image data: empty payload")
    return raw


class CloudinaryClient:
    def __init__(self, cfg: Settings = default_settings, http: Optional[httpx.AsyncClient] = None):
        self.cloud_name = cfg.CLOUDINARY_CLOUD_NAME or ""
        self.api_key = cfg.CLOUDINARY_API_KEY or ""
        self.api_secret = cfg.CLOUDINARY_API_SECRET or ""
        self._timeout = cfg.OUTBOUND_TIMEOUT_SECONDS
        self._http = http

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, **kwargs)

    async def upload_image(
        self,
        b64_data: str,
        public_id: Optional[str] = None,
        folder: str = DEFAULT_FOLDER,
    ) -> str:
        image = decode_image(b64_data)

        params = {
            "timestamp": str(int(time.time())),
            "folder": folder,
            "transformation": TRANSFORMATION,
        }
        if public_id:
            params["public_id"] = public_id
        form = dict(params, api_key=self.api_key, signature=sign_params(params, self.api_secret))

        url = UPLOAD_URL.format(cloud=self.cloud_name)
        try:
            resp = await self._post(url, data=form, files={"file": ("upload.jpg", image)})
        except httpx.HTTPError as e:
            log.exception("Cloudinary request failed")
            raise InternalError("Cloudinary upload failed") from e

        if resp.status_code >= 400:
            log.error("Cloudinary upload failed status=%s body=%s", resp.status_code, resp.text[:500])
            raise InternalError("Cloudinary upload failed")

        secure_url = resp.json().get("secure_url")
        if not secure_url:
            log.error("Cloudinary response has no secure_url")
            raise InternalError("Cloudinary upload failed")

        log.info("Cloudinary upload ok public_id=%s bytes=%d", public_id, len(image))
        return secure_url


def get_cloudinary(request: Request) -> CloudinaryClient:
    return CloudinaryClient(request.app.state.settings)
