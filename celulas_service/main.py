import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from celulas_service.config import Settings, load_settings
from celulas_service.db import Database
from celulas_service.routers import auth, cells, dashboard, me, prayers, users
from celulas_service.seed import ensure_admin

logger = logging.getLogger(__name__)

# --- Métricas Prometheus ---
REQUEST_COUNT = Counter(
    "celulas_requests_total",
    "Total de requisições processadas",
    ["method", "endpoint", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "celulas_request_latency_seconds",
    "Latência das requisições em segundos",
    ["endpoint"]
)


def _endpoint_label(request: Request) -> str:
    # Usa o template da rota (/cells/{cell_id}) para não explodir a cardinalidade
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url)
        try:
            database.create_tables()
            db = database.session()
            try:
                ensure_admin(db, settings)
            finally:
                db.close()
        except Exception as e:
            logger.error(f"Erro ao inicializar o banco de dados: {e}", exc_info=True)
            database.dispose()
            raise

        app.state.settings = settings
        app.state.db = database
        logger.info("Serviço de células iniciado.")
        yield
        database.dispose()

    app = FastAPI(
        title="Gestão de Células",
        description="Cadastro e login, células com líderes e membros, e registro diário de oração.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Middleware para Métricas ---
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()
        response = None
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as exc:
            logger.error(f"Exceção não tratada em {request.url.path}: {exc}", exc_info=True)
            response = JSONResponse(status_code=500, content={"error": "Erro interno do servidor"})
        finally:
            latency = time.time() - start_time
            endpoint = _endpoint_label(request)
            REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code
            ).inc()

        return response

    # --- Tratamento de erros: sempre {"error": mensagem} ---
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Dados inválidos"
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"Dados inválidos: {location} {errors[0].get('msg', '')}".strip()
        logger.warning(f"Requisição inválida em {request.url.path}: {message}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Erro de banco de dados em {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Erro interno do servidor"},
        )

    # --- Endpoints de Saúde e Métricas ---
    @app.get("/metrics", tags=["Monitoring"])
    def metrics():
        """Expõe as métricas para o Prometheus."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", tags=["Monitoring"])
    def health_check(request: Request):
        """Verifica se o serviço responde e se o banco aceita consultas."""
        try:
            request.app.state.db.ping()
        except SQLAlchemyError as e:
            logger.error(f"Health check falhou: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "error", "service": "celulas_service", "database": "unavailable"},
            )
        return {"status": "ok", "service": "celulas_service", "database": "ok"}

    app.include_router(auth.router)
    app.include_router(me.router)
    app.include_router(dashboard.router)
    app.include_router(users.router)
    app.include_router(cells.router)
    app.include_router(prayers.router)

    return app


app = create_app()
