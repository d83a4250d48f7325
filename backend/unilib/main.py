"""
Ponto de entrada da aplicação FastAPI.

Este módulo configura a aplicação FastAPI, inclui rotas, converte os
erros de domínio em respostas HTTP e define handlers de ciclo de vida
(startup/shutdown).
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from unilib.api.v1.router import api_router
from unilib.core.config import get_settings
from unilib.core.exceptions import ErrorKind, LibraryError
from unilib.core.logging import get_logger, setup_logging
from unilib.db.redis import check_redis_connection, close_redis, init_redis
from unilib.db.session import check_database_connection, engine
from unilib.schemas.base import ErrorResponse
from unilib.schemas.health import HealthResponse

settings = get_settings()
logger = get_logger(__name__)

# Status HTTP por categoria de erro de domínio
ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PRECONDITION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.

    Startup:
        - Configura logging
        - Conecta ao Redis
        - Verifica conexão com o banco

    Shutdown:
        - Fecha conexão com Redis
        - Fecha pool de conexões do banco
    """
    # Startup
    setup_logging()
    logger.info(f"Iniciando {settings.APP_NAME} em ambiente {settings.ENVIRONMENT}")

    try:
        await init_redis()
        if await check_redis_connection():
            logger.info("Conexão com Redis estabelecida")
        else:
            logger.warning("Redis não disponível - cache desabilitado")
    except Exception as e:
        logger.warning(f"Falha ao conectar ao Redis: {e}")

    success, error = await check_database_connection()
    if success:
        logger.info("Conexão com o banco estabelecida")
    else:
        logger.warning(f"Banco não disponível: {error}")

    yield

    # Shutdown
    logger.info(f"Encerrando {settings.APP_NAME}")
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="API REST da biblioteca universitária: acervo, empréstimos e multas",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    """Converte erros de domínio em ErrorResponse com o status da categoria."""
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} - {exc.message}")

    body = ErrorResponse(
        error=exc.code,
        message=exc.message,
        details=exc.payload or None,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == ErrorKind.UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


# Inclui rotas da API v1
app.include_router(api_router)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Verifica status da aplicação",
    description="Retorna o status da aplicação e das dependências (banco e Redis).",
)
async def health_check() -> HealthResponse:
    """
    Endpoint de healthcheck para monitoramento.

    `status` é "degraded" quando banco ou Redis não respondem.
    """
    database_ok, _ = await check_database_connection()
    redis_ok = await check_redis_connection()
    return HealthResponse(
        status="healthy" if database_ok and redis_ok else "degraded",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        database=database_ok,
        redis=redis_ok,
    )
