from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

import uvicorn
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from authgrid.api.rate_limit import TokenBucket
from authgrid.config import AuthgridSettings
from authgrid.core import key_codec
from authgrid.core.logging import correlation_scope
from authgrid.core.protocol import parse_algorithm
from authgrid.errors import AuthgridError, MalformedEncoding
from authgrid.factory import AuthServices

logger = logging.getLogger(__name__)

_REQUEST_ID_HEADER = "X-Request-ID"


class _RateLimited(Exception):
    pass


class _Payload(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class RegisterPayload(_Payload):
    public_key: str
    key_type: str


class ChallengePayload(_Payload):
    handle: str

    @field_validator("handle")
    @classmethod
    def _validate_not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("Handle is required")
        return value


class VerifyPayload(_Payload):
    handle: str
    challenge: str
    signature: str

    @field_validator("handle", "challenge", "signature")
    @classmethod
    def _validate_not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("Handle, challenge, and signature are required")
        return value


def _decode_field(value: str, message: str) -> bytes:
    try:
        return key_codec.decode(value)
    except MalformedEncoding as exc:
        raise MalformedEncoding(message) from exc


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


class AuthWebApp:
    """HTTP surface over ``AuthProtocol``; holds no protocol state itself."""

    def __init__(self, services: AuthServices, settings: AuthgridSettings | None = None) -> None:
        self.settings = settings or AuthgridSettings()
        self.services = services
        self.protocol = services.protocol
        self._limiter: TokenBucket | None = None
        if self.settings.rate_limit.enabled:
            self._limiter = TokenBucket(self.settings.rate_limit.rate_per_s, self.settings.rate_limit.burst)

        self.app = FastAPI(title="authgrid", lifespan=self._lifespan)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.server.cors_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
            allow_credentials=True,
            max_age=300,
        )
        self._setup_error_handlers()
        self._setup_middleware()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        del app
        task = asyncio.create_task(self._prune_loop())
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _prune_loop(self) -> None:
        interval = self.settings.challenges.ttl_s
        while True:
            await asyncio.sleep(interval)
            try:
                await self.services.prune()
            except Exception:  # noqa: BLE001
                logger.warning("Periodic prune failed", exc_info=True)

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(AuthgridError)
        async def handle_auth_error(request: Request, exc: AuthgridError) -> JSONResponse:
            del request
            return _error(exc.status_code, exc.message)

        @self.app.exception_handler(RequestValidationError)
        async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
            del request
            errors = exc.errors()
            message = "Invalid request body"
            if errors:
                first = errors[0]
                message = str(first.get("msg", message)).removeprefix("Value error, ")
            return _error(400, message)

    def _setup_middleware(self) -> None:
        @self.app.middleware("http")
        async def correlate(
            request: Request,
            call_next: Callable[[Request], Awaitable[Response]],
        ) -> Response:
            request_id = request.headers.get(_REQUEST_ID_HEADER) or uuid4().hex
            with correlation_scope(request_id=request_id):
                response = await call_next(request)
            response.headers[_REQUEST_ID_HEADER] = request_id
            return response

    async def _rate_limited(self) -> None:
        if self._limiter is not None and not await self._limiter.allow():
            raise _RateLimited()

    def _session_token(self, request: Request) -> str | None:
        authorization = request.headers.get("Authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return request.cookies.get(self.settings.server.session_cookie) or None

    def _setup_routes(self) -> None:
        limited = [Depends(self._rate_limited)]

        @self.app.exception_handler(_RateLimited)
        async def handle_rate_limited(request: Request, exc: _RateLimited) -> JSONResponse:
            del request, exc
            return _error(429, "Rate limit exceeded")

        @self.app.get("/health")
        async def health() -> JSONResponse:
            return JSONResponse({"status": "healthy", "time": datetime.now(UTC).isoformat()})

        @self.app.post("/register", dependencies=limited)
        async def register(payload: RegisterPayload) -> JSONResponse:
            algorithm = parse_algorithm(payload.key_type)
            public_key = _decode_field(payload.public_key, "Invalid public key encoding")
            identity = await self.protocol.register(public_key, algorithm)
            return JSONResponse(
                {
                    "handle": identity.handle,
                    "id": identity.id,
                    "created_at": identity.created_at.isoformat(),
                },
            )

        @self.app.post("/challenge", dependencies=limited)
        async def challenge(payload: ChallengePayload) -> JSONResponse:
            with correlation_scope(handle=payload.handle):
                issued = await self.protocol.challenge(payload.handle)
            return JSONResponse(
                {
                    "challenge": key_codec.encode(issued.nonce),
                    "expires_at": issued.expires_at.isoformat(),
                },
            )

        @self.app.post("/verify", dependencies=limited)
        async def verify(payload: VerifyPayload) -> JSONResponse:
            nonce = _decode_field(payload.challenge, "Invalid challenge encoding")
            signature = _decode_field(payload.signature, "Invalid signature encoding")
            with correlation_scope(handle=payload.handle):
                result = await self.protocol.verify(payload.handle, nonce, signature)
            return JSONResponse(result.model_dump(mode="json", exclude_none=True))

        @self.app.post("/logout")
        async def logout(request: Request) -> JSONResponse:
            token = self._session_token(request)
            if token is None:
                return _error(401, "Not authenticated")
            await self.protocol.logout(token)
            response = JSONResponse({"status": "ok"})
            response.delete_cookie(self.settings.server.session_cookie)
            return response

        @self.app.get("/session")
        async def session(request: Request) -> JSONResponse:
            token = self._session_token(request)
            if token is None:
                return JSONResponse({"authenticated": False})
            try:
                handle = await self.protocol.authenticate(token)
            except AuthgridError:
                return JSONResponse({"authenticated": False})
            return JSONResponse({"authenticated": True, "handle": handle})

        @self.app.get("/user/{handle}")
        async def user(handle: str) -> JSONResponse:
            identity = await self.protocol.lookup(handle)
            return JSONResponse(
                {
                    "handle": identity.handle,
                    "public_key": key_codec.encode(identity.public_key),
                    "key_type": identity.algorithm.value,
                    "created_at": identity.created_at.isoformat(),
                },
            )

    async def serve(self, log_level: str = "info") -> None:
        config = uvicorn.Config(
            self.app,
            host=self.settings.server.host,
            port=self.settings.server.port,
            log_level=log_level,
        )
        server = uvicorn.Server(config)
        await server.serve()


__all__ = ["AuthWebApp"]
