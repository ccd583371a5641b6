from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import select

from .config import Settings
from .db import create_db_engine, get_session, init_db
from .models import Profile, QuestionSchema
from .surveys.normalize import Normalizer


logger = logging.getLogger(__name__)


def _auth_dependency(
    request: Request,
    token: Optional[str] = Query(default=None),
) -> None:
    settings: Settings = request.app.state.settings
    required = settings.admin_token.strip()
    if not required:
        # No token configured, allow access (dev mode)
        return
    supplied = token or request.headers.get("X-Admin-Token")
    if supplied != required:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


Auth = Annotated[None, Depends(_auth_dependency)]


async def _json_body(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty payload received.")
    try:
        return json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payload is not valid JSON.") from None


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    app = FastAPI(title="Questionnaire API", version="0.1.0")
    app.state.settings = settings
    app.state.engine = create_db_engine(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Admin-Token"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        init_db(app.state.engine)

    router = APIRouter()

    @router.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/api/questions")
    def get_questions() -> list[Any]:
        with get_session(app.state.engine) as session:
            latest = session.exec(
                select(QuestionSchema).order_by(QuestionSchema.created_at.desc(), QuestionSchema.id.desc())
            ).first()
        if latest is None:
            return []
        return json.loads(latest.payload_json)

    @router.post("/api/questions")
    async def save_questions(request: Request, _: Auth) -> dict[str, str]:
        payload = await _json_body(request)
        if not isinstance(payload, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Expected a JSON array of questions.")
        canonical = Normalizer().normalize(payload)
        with get_session(app.state.engine) as session:
            session.add(QuestionSchema(payload_json=json.dumps(canonical, ensure_ascii=False)))
            session.commit()
        logger.info("saved question schema with %d top-level questions", len(canonical))
        return {"status": "success", "message": "設定已儲存"}

    @router.post("/api/profile")
    async def save_profile(request: Request) -> dict[str, str]:
        payload = await _json_body(request)
        if not isinstance(payload, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Expected a JSON object.")
        uuid = payload.get("uuid")
        name = payload.get("name")
        profile = Profile(
            uuid=str(uuid) if uuid else None,
            name=str(name) if name else None,
            payload_json=json.dumps(payload, ensure_ascii=False),
        )
        with get_session(app.state.engine) as session:
            session.add(profile)
            session.commit()
        return {"status": "ok"}

    @router.get("/api/profile")
    def get_profile(uuid: Optional[str] = Query(default=None)) -> dict[str, Any]:
        if not uuid or not uuid.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="uuid is required")
        with get_session(app.state.engine) as session:
            profile = session.exec(
                select(Profile).where(Profile.uuid == uuid.strip()).order_by(Profile.id)
            ).first()
        if profile is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
        return json.loads(profile.payload_json)

    app.include_router(router, prefix=settings.api_prefix)
    return app


async def run_api(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings()
    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    await server.serve()
