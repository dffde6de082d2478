from typing import List, Optional
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest
from .config import Settings, get_settings
from .db import create_tables, init_engine_and_session
from .hf_client import TransportError, build_classifier
from .mapper import IncompleteOutcomeError
from .repository import SQLRepository
from .schemas import AnalysesSummaryResponse, AnalysisRequest, AnalysisResponse
from .service import AnalyzeOperation, InvalidRequestError
from .utils.logging import get_logger

log = get_logger(__name__)


def build_operation(settings: Settings) -> AnalyzeOperation:
    engine, SessionLocal = init_engine_and_session(settings.database_url)
    create_tables(engine)
    return AnalyzeOperation(build_classifier(settings), SQLRepository(SessionLocal))


def create_app(settings: Optional[Settings] = None, operation: Optional[AnalyzeOperation] = None) -> FastAPI:
    settings = settings or get_settings()
    operation = operation or build_operation(settings)

    app = FastAPI(title="Process Monitor API", version=settings.app_version)
    app.state.operation = operation

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError):
        return JSONResponse(status_code=400, content={"error": "invalid_request", "detail": str(exc)})

    @app.exception_handler(TransportError)
    async def classifier_unavailable(request: Request, exc: TransportError):
        log.error(f"Classifier unavailable: {exc}")
        return JSONResponse(status_code=502, content={"error": "classifier_unavailable", "detail": str(exc)})

    @app.exception_handler(IncompleteOutcomeError)
    async def incomplete_classification(request: Request, exc: IncompleteOutcomeError):
        return JSONResponse(status_code=502, content={"error": "incomplete_classification", "detail": str(exc)})

    registry = CollectorRegistry()
    requests_total = Counter(
        "http_requests_received_total",
        "HTTP requests handled, by method, route and status code.",
        ["method", "endpoint", "code"],
        registry=registry,
    )
    app.state.metrics_registry = registry

    @app.middleware("http")
    async def count_requests(request: Request, call_next):
        response = await call_next(request)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        requests_total.labels(request.method, endpoint, str(response.status_code)).inc()
        return response

    @app.get("/health")
    def health():
        return {"ok": True, "version": settings.app_version}

    @app.get("/health/live")
    def live():
        return {"ok": True}

    @app.get("/prometheus/metrics")
    def metrics():
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health/ready")
    def ready():
        ping = getattr(operation.repository, "ping", None)
        if ping is not None and not ping():
            return JSONResponse(status_code=503, content={"ok": False})
        return {"ok": True}

    @app.post("/analyze", response_model=AnalysisResponse)
    def analyze(body: AnalysisRequest):
        return operation.execute(body)

    @app.get("/history", response_model=Optional[List[AnalysisResponse]])
    def history():
        analyses = operation.get_history()
        if analyses is None:
            return Response(status_code=204)
        return analyses

    @app.get("/summary", response_model=AnalysesSummaryResponse)
    def summary():
        return operation.get_summary()

    return app
