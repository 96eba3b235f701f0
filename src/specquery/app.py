"""HTTP adapter exposing the search service.

Routes:
    POST /search   JSON body with ``index_name``, ``query_spec`` and optional
                   ``min_score``/``lat``/``lon``/``dist``/``include_diagnostics``
    GET  /health   registered indexes
    GET  /metrics  Prometheus exposition

Every request problem (bad JSON, a missing parameter, an unknown index, a
spec that does not compile) is answered with a 400 carrying one message.

Usage:
    SPECQUERY_CORPUS_PATH=corpus.json python -m specquery.app
"""

from collections.abc import Mapping
import logging
from pathlib import Path
from typing import Any

import orjson
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from specquery.adapters.entity_repository import AbstractEntityRepository, InMemoryEntityRepository
from specquery.config import Settings, get_settings
from specquery.errors import SpecQueryError
from specquery.indexing import index_entity
from specquery.observability.logging import configure_logging
from specquery.observability.metrics import get_metrics, get_metrics_content_type, init_metrics
from specquery.observability.tracing import init_tracing, trace_request
from specquery.registry import IndexRegistry
from specquery.service_layer.search_service import SearchService


logger = logging.getLogger(__name__)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=400)


def load_corpus(path: Path, registry: IndexRegistry, entities: AbstractEntityRepository) -> int:
    """Create indexes and index entities described by a JSON file.

    Expected shape::

        {"indexes": {"node_auto_index": {"analyzer": "whitespace",
                                         "entities": {"doc1": {"text": "...", "lat": 21.3, "lon": -157.8}}}}}

    Returns:
        Number of entities indexed
    """
    payload = orjson.loads(path.read_bytes())
    indexes = payload.get("indexes", {}) if isinstance(payload, Mapping) else {}
    count = 0
    for index_name, definition in indexes.items():
        index = registry.create(
            index_name,
            analyzer=definition.get("analyzer"),
            field_analyzers=definition.get("field_analyzers"),
        )
        for entity_ref, properties in definition.get("entities", {}).items():
            index_entity(index, entity_ref, properties, entities=entities)
            count += 1
    logger.info("Loaded %d entities into %d index(es) from %s", count, len(indexes), path)
    return count


def _build_search_endpoint(service: SearchService):
    async def search_endpoint(request: Request) -> JSONResponse:
        try:
            params: Any = orjson.loads(await request.body())
        except orjson.JSONDecodeError as exc:
            return _bad_request(f"Request body is not valid JSON: {exc}")
        if not isinstance(params, dict):
            return _bad_request("Request body must be a JSON object")

        try:
            response = await run_in_threadpool(service.search, params)
        except SpecQueryError as exc:
            logger.info("Rejected search request: %s", exc)
            return _bad_request(str(exc))
        return JSONResponse(service.render(response, include_diagnostics=params.get("include_diagnostics") is True))

    return search_endpoint


def _build_health_endpoint(registry: IndexRegistry):
    async def health_endpoint(_: Request) -> JSONResponse:
        return JSONResponse({"status": "healthy", "indexes": registry.list_names()})

    return health_endpoint


async def metrics_endpoint(_: Request) -> Response:
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


def create_app(
    registry: IndexRegistry | None = None,
    entities: AbstractEntityRepository | None = None,
    settings: Settings | None = None,
) -> Starlette:
    """Build the ASGI application around a registry and an entity repository."""
    settings = settings or get_settings()
    registry = registry if registry is not None else IndexRegistry(default_analyzer=settings.default_analyzer)
    entities = entities if entities is not None else InMemoryEntityRepository()
    if settings.corpus_path is not None:
        load_corpus(settings.corpus_path, registry, entities)

    service = SearchService(registry, entities, settings)
    routes = [
        Route("/search", endpoint=_build_search_endpoint(service), methods=["POST"]),
        Route("/health", endpoint=_build_health_endpoint(registry), methods=["GET"]),
        Route("/metrics", endpoint=metrics_endpoint, methods=["GET"]),
    ]
    app = Starlette(
        debug=settings.log_level.lower() == "debug",
        routes=routes,
        middleware=[Middleware(BaseHTTPMiddleware, dispatch=trace_request)],
    )
    app.state.registry = registry
    app.state.entities = entities
    app.state.search_service = service
    return app


def main() -> None:
    """Run the HTTP server with settings from the environment."""
    import uvicorn

    settings = get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    init_metrics(service_name=settings.service_name)
    init_tracing(service_name=settings.service_name)

    app = create_app(settings=settings)
    logger.info("Starting specquery on %s:%d", settings.host, settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
