from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://127.0.0.1:4096"


class BackendError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OpenCodeServerClient:
    """HTTP client for the OpenCode Server session API.

    Satisfies the orchestrator ``Backend`` protocol: ``send_message`` and
    ``interrupt`` return nothing and raise ``BackendError`` on failure.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = (base_url or os.getenv("OPENCODE_SERVER_URL", DEFAULT_SERVER_URL)).rstrip("/")
        self._timeout = timeout
        self._client = client

    async def create_session(self, title: str | None = None) -> str:
        """Start a new server session and return its id."""
        payload: Dict[str, Any] = {}
        if title:
            payload["title"] = title
        data = await self._request_json("POST", "/session", payload)
        session_id = data.get("id") if isinstance(data, dict) else None
        if not session_id:
            raise BackendError("Missing session id in response")
        return session_id

    async def send_message(self, session_id: str, text: str) -> None:
        await self._request_json(
            "POST",
            f"/session/{quote(session_id, safe='')}/message",
            {"parts": [{"type": "text", "text": text}]},
        )

    async def interrupt(self, session_id: str) -> None:
        await self._request_json("POST", f"/session/{quote(session_id, safe='')}/abort", {})

    async def _request_json(self, method: str, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        logger.debug(f"OpenCode request: {method} {url}")
        try:
            if self._client is not None:
                response = await self._client.request(method, url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, json=payload)
        except httpx.HTTPError as exc:
            raise BackendError(f"Request to {path} failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise BackendError(
                f"Request failed ({response.status_code}): {response.text[:500]}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
