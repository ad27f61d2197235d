"""FastAPI application factory for the QuarkfinAI development backend."""

from __future__ import annotations

from fastapi import FastAPI

from quarkfin.config import Settings, get_settings
from quarkfin.middleware import configure_cors, configure_rate_limiting, lifespan, logging_middleware
from quarkfin.routers import assessments, auth, business_risk, health, payments, website_risk
from quarkfin.routers.deps import configure_error_handlers
from quarkfin.store import data_store


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="QuarkfinAI Platform (development backend)",
        description="In-memory stand-in for the QuarkfinAI platform API",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Store settings on app state
    app.state.settings = settings
    data_store.configure(settings.stub_processing_polls, settings.stub_initial_credits)

    # Middleware
    app.middleware("http")(logging_middleware)
    configure_cors(app, settings)
    configure_rate_limiting(app, settings)
    configure_error_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(assessments.router)
    app.include_router(business_risk.router)
    app.include_router(auth.router)
    app.include_router(website_risk.router)
    app.include_router(payments.router)

    return app


# Default app instance for uvicorn
app = create_app()
