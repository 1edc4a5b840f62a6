"""FastAPI application exposing the SME pipeline over HTTP.

All routes live under ``/api``:

- GET    /api/health - Health check
- GET    /api/countries - List countries (oldest first)
- POST   /api/countries - Create a country
- DELETE /api/countries/{country_id} - Delete a country and its SMEs
- POST   /api/countries/{country_id}/search-smes - Discover SMEs
- GET    /api/countries/{country_id}/smes - List SMEs (newest first)
- POST   /api/smes/{sme_id}/build-website - Generate the website
- GET    /api/smes/{sme_id}/website - Website deployment metadata
- GET    /api/smes/{sme_id}/website/preview - Website html for iframe preview
- GET    /api/smes/{sme_id}/website/download - Website html as attachment
- POST   /api/smes/{sme_id}/deploy - Deploy the website
- POST   /api/smes/{sme_id}/generate-email - Draft the outreach email
- GET    /api/smes/{sme_id}/email - Stored outreach email

Failures are returned as ``{"error": ..., "detail": ...}``.

Example:
    uvicorn sme_portal.api:app --host 0.0.0.0 --port 3001
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response

from . import __version__
from .config import config
from .errors import NotFoundError, PortalError
from .llm_client import create_provider
from .logging_utils import get_logger
from .models import close_database, init_database
from .pipeline import SmePipeline
from .schemas import CountryCreate
from .search import create_search_capability

logger = get_logger(__name__)

SERVICE_NAME = "sme-portal"

PREVIEW_NOT_FOUND_HTML = (
    '<html><body style="font-family:sans-serif;padding:40px;color:#666">'
    "<h2>No website built yet</h2></body></html>"
)

PREVIEW_ERROR_HTML = "<html><body>Error loading preview</body></html>"

PREVIEW_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "Content-Security-Policy": "frame-ancestors 'self'",
}


def get_pipeline(request: Request) -> SmePipeline:
    """Dependency returning the application's pipeline."""
    return request.app.state.pipeline


router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
        "environment": config.APP_ENV,
    }


@router.get("/countries")
async def list_countries(pipeline: SmePipeline = Depends(get_pipeline)) -> list[dict[str, Any]]:
    return await pipeline.list_countries()


@router.post("/countries", status_code=status.HTTP_201_CREATED)
async def create_country(
    payload: CountryCreate,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    return await pipeline.create_country(payload.name, code=payload.code, flag=payload.flag)


@router.delete("/countries/{country_id}")
async def delete_country(
    country_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, bool]:
    await pipeline.delete_country(country_id)
    return {"ok": True}


@router.post("/countries/{country_id}/search-smes")
async def search_smes(
    country_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> list[dict[str, Any]]:
    """Run discovery for a country and return the SMEs it inserted."""
    return await pipeline.discover(country_id)


@router.get("/countries/{country_id}/smes")
async def list_smes(
    country_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> list[dict[str, Any]]:
    return await pipeline.list_smes(country_id)


@router.post("/smes/{sme_id}/build-website")
async def build_website(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, bool]:
    await pipeline.build_website(sme_id)
    return {"ok": True}


@router.get("/smes/{sme_id}/website")
async def get_website(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    return await pipeline.get_website(sme_id)


@router.get("/smes/{sme_id}/website/preview", response_class=HTMLResponse)
async def preview_website(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> HTMLResponse:
    """Serve the website html so the UI can show it in an iframe."""
    try:
        html = await pipeline.get_website_html(sme_id)
    except NotFoundError:
        return HTMLResponse(PREVIEW_NOT_FOUND_HTML, status_code=status.HTTP_404_NOT_FOUND)
    except PortalError as e:
        logger.error("Preview failed for SME %s: %s", sme_id, e.detail)
        return HTMLResponse(PREVIEW_ERROR_HTML, status_code=e.status_code)
    return HTMLResponse(html, headers=PREVIEW_HEADERS)


@router.get("/smes/{sme_id}/website/download")
async def download_website(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> Response:
    download = await pipeline.get_website_download(sme_id)
    return Response(
        content=download.html,
        media_type="text/html",
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


@router.post("/smes/{sme_id}/deploy")
async def deploy_website(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    result = await pipeline.deploy(sme_id)
    return result.model_dump()


@router.post("/smes/{sme_id}/generate-email")
async def generate_email(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, str]:
    draft = await pipeline.generate_email(sme_id)
    return draft.model_dump()


@router.get("/smes/{sme_id}/email")
async def get_email(
    sme_id: str,
    pipeline: SmePipeline = Depends(get_pipeline),
) -> dict[str, str]:
    draft = await pipeline.get_email(sme_id)
    return draft.model_dump()


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "detail": str(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal error", "detail": str(exc)},
    )


def create_app(pipeline: Optional[SmePipeline] = None) -> FastAPI:
    """Build the application.

    Args:
        pipeline: Pipeline to serve. When omitted, startup initializes the
            database and builds one from configuration.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("SME portal starting...")
        owns_pipeline = getattr(app.state, "pipeline", None) is None
        if owns_pipeline:
            await init_database()
            app.state.pipeline = SmePipeline(
                create_provider(),
                search=create_search_capability(),
            )
        logger.info("SME portal ready")

        yield

        logger.info("SME portal shutting down...")
        if owns_pipeline:
            await app.state.pipeline.provider.close()
            await close_database()
            app.state.pipeline = None
        logger.info("SME portal shutdown complete")

    app = FastAPI(
        title="SME Portal",
        description="Discover social-media-only businesses, build and deploy their websites",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    return app


app = create_app()
