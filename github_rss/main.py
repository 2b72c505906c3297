"""FastAPI application entry point"""

from contextlib import asynccontextmanager
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from github_rss.config.settings import settings
from github_rss.dependencies import Container, build_container, configure_logging
from github_rss.exceptions import (
    AlreadyExists,
    ConfigurationError,
    GatewayError,
    GenerationInProgress,
    GitHubRssError,
    InvalidUrl,
    PublishError,
    RecordNotFound,
    RepositoryNotFound,
)
from github_rss.jobs.update_feeds import run_update_pass
from github_rss.models.repository import FeedType, RepositoryStatus
from github_rss.services.publisher import RSS_CONTENT_TYPE

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    InvalidUrl: 400,
    PublishError: 400,
    RepositoryNotFound: 404,
    RecordNotFound: 404,
    AlreadyExists: 409,
    GenerationInProgress: 409,
    GatewayError: 502,
    ConfigurationError: 500,
}


class UrlRequest(BaseModel):
    url: str


class StatusUpdateRequest(BaseModel):
    status: RepositoryStatus
    feeds: Optional[Dict[str, Optional[str]]] = None
    error: Optional[str] = None


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Build the API; a container is created from settings unless injected."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        app.state.container = container or build_container(settings)
        if app.state.container.queue is not None:
            app.state.container.queue.start()
        logger.info("GitHub RSS Generator started")
        try:
            yield
        finally:
            await app.state.container.aclose()

    app = FastAPI(
        title="GitHub RSS Generator",
        description="RSS feeds for GitHub issues, pull requests, discussions and releases",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GitHubRssError)
    async def handle_domain_error(request: Request, exc: GitHubRssError):
        status_code = next(
            (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
            500,
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.__class__.__name__, "message": str(exc)},
        )

    def _container(request: Request) -> Container:
        return request.app.state.container

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "github-rss-generator", "version": settings.APP_VERSION}

    @app.post("/api/repositories/search")
    async def search_repository(body: UrlRequest, request: Request):
        result = await _container(request).service.search(body.url)
        return result.to_dict()

    @app.post("/api/repositories", status_code=201)
    async def create_repository(body: UrlRequest, request: Request):
        record = await _container(request).service.create(body.url)
        return record.to_dict()

    @app.get("/api/repositories")
    async def list_repositories(request: Request):
        return [record.to_dict() for record in _container(request).service.get_all()]

    @app.get("/api/repositories/pending")
    async def list_pending_repositories(request: Request):
        return [record.to_dict() for record in _container(request).service.get_pending()]

    @app.get("/api/repositories/{repository_id}")
    async def get_repository(repository_id: str, request: Request):
        return _container(request).store.get(repository_id).to_dict()

    @app.post("/api/repositories/{repository_id}/generate")
    async def generate_feeds(repository_id: str, request: Request):
        """Force regeneration regardless of staleness"""
        result = await _container(request).service.force_generate(repository_id)
        return result.to_dict()

    @app.get("/api/repositories/{repository_id}/feeds")
    async def get_feeds(repository_id: str, request: Request, cache: bool = False):
        service = _container(request).service
        if cache:
            return await service.get_feeds_with_cache(repository_id)
        return service.get_feeds(repository_id)

    @app.get("/api/repositories/{repository_id}/direct-urls")
    async def get_direct_urls(repository_id: str, request: Request):
        return _container(request).service.get_direct_urls(repository_id)

    @app.patch("/api/repositories/{repository_id}/status")
    async def update_status(repository_id: str, body: StatusUpdateRequest, request: Request):
        record = _container(request).service.update_status(
            repository_id,
            body.status,
            feeds=body.feeds,
            error=body.error,
        )
        return record.to_dict()

    @app.post("/api/jobs/update-feeds")
    async def update_feeds(request: Request):
        """Run one scheduled generation pass and return its statistics"""
        container = _container(request)
        return await run_update_pass(store=container.store, orchestrator=container.orchestrator)

    @app.get("/rss/{repository_path}/{feed_file}")
    async def serve_feed(repository_path: str, feed_file: str, request: Request):
        if not feed_file.endswith(".xml"):
            raise HTTPException(status_code=404, detail="Not found")
        try:
            feed_type = FeedType(feed_file[: -len(".xml")])
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown feed type: {feed_file}")

        document = _container(request).publisher.read(repository_path, feed_type)
        if document is None:
            raise HTTPException(status_code=404, detail="Feed has not been generated yet")
        return Response(
            content=document,
            media_type=f"{RSS_CONTENT_TYPE}; charset=utf-8",
            headers={"Cache-Control": "public, max-age=300"},
        )

    return app


app = create_app()


# AWS Lambda handler for HTTP requests (API Gateway)
def lambda_handler(event: Dict[str, Any], context: Any):
    from mangum import Mangum

    handler = Mangum(app)
    return handler(event, context)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "github_rss.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
