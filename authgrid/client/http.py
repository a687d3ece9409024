"""HTTP client for the four protocol endpoints."""

from __future__ import annotations

from typing import Any

import httpx

from authgrid.core import key_codec
from authgrid.errors import AuthgridError
from authgrid.models.identity import KeyAlgorithm


class ApiError(AuthgridError):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._client = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout_s)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> AuthClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def register(self, public_key: bytes, algorithm: KeyAlgorithm) -> dict[str, Any]:
        return self._post(
            "/register",
            {"public_key": key_codec.encode(public_key), "key_type": algorithm.value},
        )

    def challenge(self, handle: str) -> bytes:
        payload = self._post("/challenge", {"handle": handle})
        challenge = payload.get("challenge")
        if not isinstance(challenge, str):
            raise ApiError("invalid challenge response", 502)
        return key_codec.decode(challenge)

    def verify(self, handle: str, nonce: bytes, signature: bytes) -> dict[str, Any]:
        return self._post(
            "/verify",
            {
                "handle": handle,
                "challenge": key_codec.encode(nonce),
                "signature": key_codec.encode(signature),
            },
        )

    def logout(self, token: str) -> None:
        self._post("/logout", None, headers={"Authorization": f"Bearer {token}"})

    def _post(
        self,
        path: str,
        body: dict[str, str] | None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._client.post(path, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise ApiError(f"request to {path} failed: {exc}", 503) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise ApiError(
                f"API error: {message}" if message else f"HTTP {response.status_code}: {response.text}",
                response.status_code,
            )
        if not isinstance(payload, dict):
            raise ApiError(f"unexpected response from {path}", 502)
        return payload


__all__ = ["ApiError", "AuthClient"]
