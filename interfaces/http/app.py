from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Protocol

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import Response

from application.services import (
    IdentityProvider,
    build_auth_check,
    complete_login,
    end_session,
    resolve_session,
    start_session,
    update_country_field,
)
from domain.errors import DomainError
from domain.models import UserContext
from domain.repositories import CountryRepository
from interfaces.http.settings import Settings

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "Not logged in"


class OAuthLoginClient(IdentityProvider, Protocol):
    async def authorize_redirect(self, request: Request) -> Response:
        """Send the browser to the provider's consent page."""

        ...


def create_app(
    settings: Settings,
    country_repo: CountryRepository,
    oauth_client: OAuthLoginClient,
) -> FastAPI:
    """
    Configure and return the FastAPI app wired to the application layer.

    This module contains only HTTP concerns: sessions, CORS, status codes and
    mapping requests to/from application services.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        try:
            await country_repo.ping()
            await country_repo.ensure_indexes()
            logger.info("MongoDB connected")
        except Exception:
            # Keep serving; every store call will fail until the DB is back.
            logger.exception("MongoDB connection error")
        try:
            yield
        finally:
            await country_repo.close()

    app = FastAPI(title="Country backend", lifespan=lifespan)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        same_site="lax",
    )
    # Outermost, so preflight requests never reach the session layer.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            {"message": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(DomainError)
    async def domain_error(_request: Request, exc: DomainError) -> JSONResponse:
        return JSONResponse({"message": str(exc)}, status_code=400)

    async def current_user(request: Request) -> Optional[UserContext]:
        return await resolve_session(request.session, country_repo)

    async def require_user(
        user: Optional[UserContext] = Depends(current_user),
    ) -> UserContext:
        if user is None:
            raise HTTPException(status_code=401, detail=NOT_LOGGED_IN)
        return user

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "Backend running"

    @app.get("/api/auth/discord")
    async def login(request: Request) -> Response:
        return await oauth_client.authorize_redirect(request)

    @app.get("/api/auth/discord/callback")
    async def login_callback(request: Request) -> Response:
        result = await complete_login(request, oauth_client, country_repo)
        if not result.success:
            return RedirectResponse("/", status_code=302)

        start_session(request.session, result.user_id)
        return RedirectResponse(settings.frontend_origin, status_code=302)

    @app.post("/api/auth/logout")
    async def logout(request: Request) -> Any:
        end_session(request.session)
        return {"message": "Logged out"}

    @app.get("/api/auth/check")
    async def auth_check(user: UserContext = Depends(require_user)) -> Any:
        return build_auth_check(user)

    @app.post("/api/country/{field}/{amount}")
    async def update_country(
        field: str,
        amount: str,
        user: UserContext = Depends(require_user),
    ) -> JSONResponse:
        country = await update_country_field(user, field, amount, country_repo)
        return JSONResponse(country.to_document() if country else None)

    return app
