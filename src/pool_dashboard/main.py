from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from pool_dashboard.config import settings
from pool_dashboard.contracts.proxy import ProblemDetails
from pool_dashboard.db.database import dispose_engine
from pool_dashboard.errors import DashboardError
from pool_dashboard.middleware.correlation import (
    correlation_id_var,
    correlation_middleware,
    setup_logging,
)
from pool_dashboard.routers.dashboard import router as dashboard_router
from pool_dashboard.routers.envelope import error_response
from pool_dashboard.routers.proxy import router as proxy_router


@asynccontextmanager
async def _app_lifespan(application: FastAPI):
    application.state.is_draining = False
    yield
    application.state.is_draining = True
    await dispose_engine()


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=_app_lifespan)
setup_logging(settings.log_level)
app.middleware("http")(correlation_middleware)
Instrumentator().instrument(app).expose(app)
app.include_router(proxy_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/live")
async def health_live() -> dict[str, str]:
    return {"status": "live"}


@app.get("/health/ready")
async def health_ready(response: Response) -> dict[str, str]:
    if bool(getattr(app.state, "is_draining", False)):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "draining"}
    return {"status": "ready"}


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    problem = ProblemDetails(
        title="Internal Server Error",
        status=500,
        detail="An unexpected error occurred.",
        instance=str(request.url.path),
        correlation_id=correlation_id_var.get() or "",
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content=problem.model_dump(),
    )
