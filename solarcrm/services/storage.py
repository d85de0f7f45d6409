"""Object storage for uploaded lead documents (Supabase Storage REST API)."""

from __future__ import annotations

import logging
import time
from typing import Protocol
from urllib.parse import quote

import requests

from solarcrm.core.config import Config, get_config
from solarcrm.core.exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    def upload(self, path: str, content: bytes, content_type: str | None = None) -> str: ...

    def remove(self, paths: list[str]) -> None: ...

    def create_signed_url(self, path: str, expires_in: int) -> str: ...


def file_extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return "bin"
    extension = filename.rsplit(".", 1)[-1].strip().lower()
    return extension if extension.isalnum() else "bin"


def build_storage_path(lead_id: str, category: str, filename: str | None, now_ms: int | None = None) -> str:
    """``leads/{lead_id}/{category}_{epoch_ms}.{ext}``"""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"leads/{lead_id}/{category}_{stamp}.{file_extension(filename)}"


class SupabaseStorage:
    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        bucket: str,
        access_token: str | None = None,
        timeout: int = 10,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.bucket = bucket
        self.access_token = access_token
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config | None = None, access_token: str | None = None) -> "SupabaseStorage":
        cfg = config or get_config()
        return cls(
            cfg.SUPABASE_URL,
            cfg.SUPABASE_ANON_KEY,
            bucket=cfg.STORAGE_BUCKET,
            access_token=access_token,
            timeout=cfg.HTTP_TIMEOUT_SECONDS,
        )

    def _url(self, *parts: str) -> str:
        if not self.base_url:
            raise ConfigurationError("SUPABASE_URL is not configured.")
        return "/".join([f"{self.base_url}/storage/v1", *parts])

    def _headers(self, content_type: str | None = "application/json") -> dict[str, str]:
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {self.access_token or self.api_key}"}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _send(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            logger.error(
                "storage.request.failed",
                extra={"event": "storage.request.failed", "action": action, "error": str(exc)},
            )
            raise StorageError(f"Storage {action} failed.") from exc
        if response.status_code >= 400:
            logger.error(
                "storage.request.rejected",
                extra={
                    "event": "storage.request.rejected",
                    "action": action,
                    "status_code": response.status_code,
                    "body": response.text[:500],
                },
            )
            raise StorageError(f"Storage {action} failed.", details={"status_code": response.status_code})
        return response

    def upload(self, path: str, content: bytes, content_type: str | None = None) -> str:
        self._send(
            "POST",
            self._url("object", self.bucket, quote(path)),
            "upload",
            headers={**self._headers(content_type or "application/octet-stream"), "x-upsert": "false"},
            data=content,
        )
        return path

    def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        self._send("DELETE", self._url("object", self.bucket), "remove", headers=self._headers(), json={"prefixes": paths})

    def create_signed_url(self, path: str, expires_in: int) -> str:
        response = self._send(
            "POST",
            self._url("object", "sign", self.bucket, quote(path)),
            "sign",
            headers=self._headers(),
            json={"expiresIn": expires_in},
        )
        try:
            signed = response.json().get("signedURL") or response.json().get("signedUrl")
        except ValueError as exc:
            raise StorageError("Storage sign returned an invalid response.") from exc
        if not signed:
            raise StorageError("Storage sign returned no URL.")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"
