from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hhpilot.api.routes import router as api_router
from hhpilot.config import get_settings
from hhpilot.core.runtime import get_supervisor
from hhpilot.db.init import init_database
from hhpilot.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(*, run_supervisor: bool = True) -> FastAPI:
    settings = get_settings()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        configure_logging()
        init_database()
        if not run_supervisor:
            return
        supervisor = get_supervisor()
        if settings.autostart_agent:
            supervisor.start()
        supervisor.launch()
        logger.info("Supervisor launched running=%s", supervisor.is_running())

    @app.on_event("shutdown")
    def _shutdown() -> None:
        if run_supervisor:
            get_supervisor().shutdown()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(api_router)
    return app
