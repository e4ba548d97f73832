"""FastAPI application factory for the gemrelay chat relay.

Endpoints: /api/health, /api/session/reset, /api/chat (NDJSON stream).
The static chat UI is mounted at / when its directory exists.
"""
from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from chatcore import metrics
from chatcore.config import ConfigError, get_config
from chatcore.llm.exceptions import PayloadTooLargeError, RelayError
from gemrelay.api import cancellation
from gemrelay.api.routes.chat import router as chat_router
from gemrelay.api.routes.session import router as session_router

logger = logging.getLogger("gemrelay.api")


def _error_response(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def _describe_validation(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid value")
    return f"Invalid {loc}: {msg}" if loc else f"Invalid request body: {msg}"


@asynccontextmanager
async def _lifespan(app: FastAPI):  # noqa: D401
    yield
    n = cancellation.cancel_all("shutdown")
    if n:
        logger.info("shutdown cancelled %d in-flight streams", n)


def create_app() -> FastAPI:
    cfg = get_config()
    app = FastAPI(
        title="gemrelay",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.server.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError):  # noqa: D401
        return _error_response(exc.http_status, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _body_error(
        request: Request, exc: RequestValidationError
    ):  # noqa: D401
        return _error_response(400, _describe_validation(exc))

    @app.exception_handler(ConfigError)
    async def _config_error(request: Request, exc: ConfigError):  # noqa: D401
        logger.error("configuration invalid: %s", exc)
        return _error_response(500, str(exc))

    app.include_router(session_router)
    app.include_router(chat_router)

    # --- Static UI mount ---
    ui_dir = os.path.join(os.getcwd(), cfg.server.static_dir)
    if os.path.isdir(ui_dir):  # mount only if present
        index_path = os.path.join(ui_dir, cfg.server.index_file)

        @app.get("/", include_in_schema=False)
        def _root_index():  # noqa: D401
            if os.path.exists(index_path):
                return FileResponse(index_path)
            return RedirectResponse("/index.html")

        app.mount("/", StaticFiles(directory=ui_dir, html=True), name="ui")

    max_body = cfg.server.max_body_bytes

    @app.middleware("http")
    async def _body_limit_mw(request: Request, call_next):  # noqa: D401
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit():
            too_large = int(declared) > max_body
        elif request.method in {"POST", "PUT", "PATCH"}:
            # chunked upload: no declared size, measure what arrives
            too_large = len(await request.body()) > max_body
        else:
            too_large = False
        if too_large:
            exc = PayloadTooLargeError("Payload too large")
            return _error_response(exc.http_status, exc.message)
        return await call_next(request)

    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):  # noqa: D401
        start = time.time()
        labels = {"route": request.url.path, "method": request.method}
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            # streaming responses: measures time to headers, not to `done`
            duration_ms = (time.time() - start) * 1000.0
            metrics.inc("api_request_total", labels)
            metrics.observe("api_request_latency_ms", duration_ms, labels)
            if status >= 400:
                metrics.inc(
                    "api_request_errors_total", labels | {"status": status}
                )
    return app


app = create_app()


def main() -> None:  # pragma: no cover
    import uvicorn
    from dotenv import load_dotenv

    from chatcore.config import clear_config_cache
    from chatcore.llm.factory import clear_client_cache
    from chatcore.observability import configure_logging

    load_dotenv()
    clear_config_cache()
    clear_client_cache()
    cfg = get_config()
    configure_logging(cfg.logging)
    logger.info(
        "gemrelay listening on http://%s:%d model=%s has_api_key=%s",
        cfg.server.host,
        cfg.server.port,
        cfg.llm.default_model,
        cfg.llm.has_api_key,
    )
    uvicorn.run(create_app(), host=cfg.server.host, port=cfg.server.port)


if __name__ == "__main__":  # pragma: no cover
    main()
