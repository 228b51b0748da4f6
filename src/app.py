from __future__ import annotations

import hashlib
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Optional
from urllib.parse import parse_qsl, unquote

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ro_subtitles import __version__
from ro_subtitles.logger import REQUEST_ID, setup_logging
from ro_subtitles.service import ID_PREFIX, SUPPORTED_TYPES, AddonService, build_service
from ro_subtitles.settings import Settings, settings as default_settings

log = logging.getLogger("ro_subtitles.app")

NOT_FOUND_BODY = "-- subtitrare nedisponibilă --"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"
IMMUTABLE_CACHE = "public, max-age=31536000, immutable"

# ---------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------
MANIFEST = {
    "id": "org.titrari.stremio",
    "version": __version__,
    "name": "Titrari.ro",
    "description": "Subtitrări românești de calitate • Rapid & Corectate diacritice • titrari.ro",
    "catalogs": [],
    "resources": [
        {"name": "subtitles", "types": ["movie", "series"], "idPrefixes": ["tt"]},
        {"name": "stream", "types": ["movie", "series"], "idPrefixes": [ID_PREFIX]},
    ],
    "types": ["movie", "series"],
    "idPrefixes": ["tt", ID_PREFIX],
    "logo": "https://titrari.ro/images/logo.png",
    "background": "https://i.imgur.com/7m1rM1j.jpg",
    "behaviorHints": {"adult": False, "p2p": False, "configurable": False, "configurationRequired": False},
    "contactEmail": "stremio.ro.contact@gmail.com",
}


def _parse_extra(extra: Optional[str]) -> Dict[str, str]:
    """Stremio extras arrive as one ``key=value&key=value`` path segment."""
    if not extra:
        return {}
    return {k: v for k, v in parse_qsl(unquote(extra), keep_blank_values=False)}


def _base_url(request: Request, app_settings: Settings) -> str:
    # Respect incoming scheme by default; allow forwarding/override for proxies
    if app_settings.public_base_url:
        return app_settings.public_base_url.rstrip("/")
    base = str(request.base_url)
    xf_proto = request.headers.get("x-forwarded-proto")
    if app_settings.force_https or (xf_proto and xf_proto.lower() == "https"):
        base = base.replace("http://", "https://", 1)
    return base.rstrip("/")


def _service(request: Request) -> AddonService:
    return request.app.state.service


def create_app(app_settings: Optional[Settings] = None, service: Optional[AddonService] = None) -> FastAPI:
    app_settings = app_settings or default_settings
    setup_logging(app_settings.log_level, app_settings.json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Titrari.ro addon %s started", __version__)
        yield
        await app.state.service.aclose()
        log.info("Shutdown")

    app = FastAPI(title="Titrari.ro Subtitles for Stremio", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.service = service or build_service(app_settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        token = REQUEST_ID.set(rid)
        try:
            response = await call_next(request)
        finally:
            REQUEST_ID.reset(token)
        response.headers["X-Request-ID"] = rid
        return response

    @app.get("/manifest.json")
    async def manifest() -> JSONResponse:
        return JSONResponse(MANIFEST)

    @app.get("/")
    async def index() -> JSONResponse:
        return JSONResponse({"status": "ok", "manifest": "/manifest.json", "name": MANIFEST["name"]})

    @app.get("/health")
    async def health() -> PlainTextResponse:
        return PlainTextResponse("OK")

    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__})

    # -----------------------------------------------------------------
    # Subtitle search
    # -----------------------------------------------------------------
    async def _subtitles_response(request: Request, media_type: str, item_id: str) -> JSONResponse:
        if media_type not in SUPPORTED_TYPES:
            raise HTTPException(status_code=404, detail="Unsupported media type")
        subtitles = await _service(request).list_subtitles(
            media_type, item_id, _base_url(request, request.app.state.settings)
        )
        return JSONResponse({"subtitles": subtitles})

    @app.get("/subtitles/{media_type}/{item_id}.json")
    async def subtitles(request: Request, media_type: str, item_id: str) -> JSONResponse:
        return await _subtitles_response(request, media_type, item_id)

    @app.get("/subtitles/{media_type}/{item_id}/{extra}.json")
    async def subtitles_with_extra(request: Request, media_type: str, item_id: str, extra: str) -> JSONResponse:
        return await _subtitles_response(request, media_type, item_id)

    # -----------------------------------------------------------------
    # Streams
    # -----------------------------------------------------------------
    def _streams_response(request: Request, item_id: str, extra: Dict[str, str]) -> JSONResponse:
        for key in ("season", "episode"):
            value = request.query_params.get(key)
            if value and key not in extra:
                extra[key] = value
        streams = _service(request).list_streams(item_id, extra, _base_url(request, request.app.state.settings))
        return JSONResponse({"streams": streams})

    @app.get("/stream/{media_type}/{item_id}.json")
    async def stream(request: Request, media_type: str, item_id: str) -> JSONResponse:
        return _streams_response(request, unquote(item_id), {})

    @app.get("/stream/{media_type}/{item_id}/{extra}.json")
    async def stream_with_extra(request: Request, media_type: str, item_id: str, extra: str) -> JSONResponse:
        return _streams_response(request, unquote(item_id), _parse_extra(extra))

    # -----------------------------------------------------------------
    # Subtitle text
    # -----------------------------------------------------------------
    async def _subtitle_download(
        request: Request, subtitle_id: str, season: Optional[str], episode: Optional[str]
    ) -> Response:
        text = await _service(request).subtitle_text(subtitle_id, season, episode)
        if not text:
            return PlainTextResponse(NOT_FOUND_BODY, status_code=404, media_type=TEXT_MEDIA_TYPE)

        content = text.encode("utf-8")
        current_etag = f'W/"{hashlib.md5(content).hexdigest()}"'
        headers = {
            "Cache-Control": IMMUTABLE_CACHE,
            "ETag": current_etag,
            "Access-Control-Allow-Origin": "*",
        }
        inm = request.headers.get("if-none-match")
        if inm and inm.strip() == current_etag:
            return Response(status_code=304, headers=headers)
        return Response(content=content, media_type=TEXT_MEDIA_TYPE, headers=headers)

    @app.get("/subtitle/{subtitle_id}.srt")
    async def serve_subtitle(
        request: Request,
        subtitle_id: str,
        season: Optional[str] = Query(None),
        episode: Optional[str] = Query(None),
    ) -> Response:
        return await _subtitle_download(request, subtitle_id, season, episode)

    # Some clients probe with HEAD before downloading
    @app.head("/subtitle/{subtitle_id}.srt")
    async def head_subtitle(
        request: Request,
        subtitle_id: str,
        season: Optional[str] = Query(None),
        episode: Optional[str] = Query(None),
    ) -> Response:
        resp = await _subtitle_download(request, subtitle_id, season, episode)
        return Response(status_code=resp.status_code, headers=dict(resp.headers))

    return app


app = create_app()
