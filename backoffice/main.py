from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.api.v1.fee_reports.router import router as fee_reports_router
from backoffice.api.v1.student_fees.router import router as student_fees_router
from backoffice.core.config import settings
from backoffice.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fee Reports Backend")

    # CORS: comma-separated CORS_ORIGINS, or any origin when unset
    origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_reports_router)
    app.include_router(student_fees_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
