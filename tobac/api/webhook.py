"""
Validating admission webhook server.

The Kubernetes API server POSTs an AdmissionReview for every write to a watched resource;
we answer allow/deny with a human-readable reason. Team lookups are served from the
in-memory team directory, which a background thread keeps fresh.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.concurrency import run_in_threadpool

from tobac import metrics
from tobac.api.admission import AdmissionReview, parse_review, review_response
from tobac.authz.engine import cluster_admin_group, evaluate
from tobac.core.config import TobacConfig, get_config
from tobac.core.models import DecisionRequest, ResourceView
from tobac.directory.cache import TeamDirectoryCache, build_team_cache
from tobac.providers.base import ResolveError, ResourceResolver

logger = logging.getLogger(__name__)


def review_admission(
    review: AdmissionReview,
    *,
    cfg: TobacConfig,
    teams: TeamDirectoryCache,
    resolver: Optional[ResourceResolver] = None,
) -> Dict[str, Any]:
    """Decide one AdmissionReview and build the reply body."""
    req = review.request
    identity = req.identity
    submitted = req.submitted_view()
    existing = req.existing_view()

    logger.info(
        "Request %s %s from user '%s' in groups %s",
        req.operation or "?",
        req.ref.describe(),
        identity.username,
        sorted(identity.groups),
    )

    if req.operation == "DELETE" and existing is None and resolver is not None:
        # Older API servers omit oldObject on DELETE; read the live object instead.
        try:
            existing = ResourceView.from_object(resolver.resolve(req.ref))
        except ResolveError as e:
            if cluster_admin_group(identity, cfg.cluster_admins) is None:
                message = f"unable to verify ownership of existing resource: {e}"
                logger.warning("Denying request: %s", message)
                metrics.record_decision(False, "resolve_error")
                return review_response(review, allowed=False, message=message, code="resolve_error", http_code=500)
            logger.info("Could not resolve existing resource (%s); continuing as cluster administrator", e)

    decision = evaluate(
        DecisionRequest(
            identity=identity,
            teams=teams,
            submitted=submitted,
            existing=existing,
            cluster_admins=cfg.cluster_admins,
            service_user_templates=cfg.service_user_templates,
        )
    )

    metrics.record_decision(decision.allowed, decision.code)
    if decision.allowed:
        logger.info("Allowing request: %s", decision.reason)
    else:
        logger.info("Denying request: %s", decision.reason)

    return review_response(review, allowed=decision.allowed, message=decision.reason, code=decision.code)


def create_app(
    *,
    cfg: Optional[TobacConfig] = None,
    cache: Optional[TeamDirectoryCache] = None,
    resolver: Optional[ResourceResolver] = None,
    start_sync: bool = True,
) -> FastAPI:
    """
    Build the webhook application.

    Collaborators are injected for tests; in production they are built on startup from
    the environment (team cache + Kubernetes resolver).
    """
    app = FastAPI(title="tobac admission webhook")
    app.state.cfg = cfg
    app.state.cache = cache
    app.state.resolver = resolver

    def _cfg() -> TobacConfig:
        if app.state.cfg is None:
            app.state.cfg = get_config()
        return app.state.cfg

    def _cache() -> TeamDirectoryCache:
        if app.state.cache is None:
            app.state.cache = build_team_cache(_cfg())
        return app.state.cache

    @app.on_event("startup")
    def _startup_team_sync() -> None:
        if app.state.resolver is None:
            from tobac.providers.k8s_provider import get_resource_resolver

            app.state.resolver = get_resource_resolver()
        if start_sync:
            _cache().start()

    @app.on_event("shutdown")
    def _shutdown_team_sync() -> None:
        if app.state.cache is not None:
            app.state.cache.stop(timeout=5)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/readyz")
    def readyz() -> JSONResponse:
        cache = _cache()
        body = {
            "ok": cache.synced,
            "teams": len(cache),
            "last_success_at": cache.last_success_at.isoformat() if cache.last_success_at else None,
            "last_error": cache.last_error,
        }
        return JSONResponse(status_code=200 if cache.synced else 503, content=body)

    @app.get("/metrics")
    def prometheus_metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    async def admit(request: Request) -> JSONResponse:
        content_type = (request.headers.get("content-type") or "").split(";")[0].strip()
        if content_type != "application/json":
            logger.error("contentType=%s, expect application/json", content_type)
            raise HTTPException(status_code=415, detail="Content-Type must be application/json")

        try:
            payload = await request.json()
            review = parse_review(payload)
        except ValueError as e:
            logger.error("Invalid admission review: %s", e)
            raise HTTPException(status_code=400, detail=f"Invalid admission review: {e}")

        try:
            body = await run_in_threadpool(
                review_admission,
                review,
                cfg=_cfg(),
                teams=_cache(),
                resolver=app.state.resolver,
            )
        except Exception as e:
            logger.exception("Unexpected error processing admission review")
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

        return JSONResponse(status_code=200, content=body)

    app.add_api_route("/", admit, methods=["POST"])
    app.add_api_route("/validate", admit, methods=["POST"])

    return app


app = create_app()


def run(
    host: str = "0.0.0.0",
    port: int = 8443,
    *,
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    if bool(cert_file) != bool(key_file):
        raise ValueError("--cert and --key must be given together")

    logger.info("Starting admission webhook on %s:%d (tls=%s log_level=%s)", host, port, bool(cert_file), log_level)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=uvicorn_log_level,
        ssl_certfile=cert_file,
        ssl_keyfile=key_file,
    )
