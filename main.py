from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import importlib
import importlib.util
import logging
import sys

from config import Settings, settings
from database.connection import MongoConnection
from errors import AppError
from lifecycle import Lifecycle
from middleware.cors import OriginPolicyCORSMiddleware
from middleware.error_response import ErrorResponseMiddleware, unhandled_error_response
from middleware.origin_policy import OriginPolicy
from middleware.request_logging import RequestLoggingMiddleware
from middleware.security_headers import SecurityHeadersMiddleware
from routes.health_routes import router as health_router

# =====================================================
# * Configuración de Logging global
# =====================================================
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s"
)
# pymongo ya se registra vía CommandLogger; uvicorn.access lo cubre RequestLoggingMiddleware
logging.getLogger("pymongo").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logger = logging.getLogger("main")

# =====================================================
# * Routers montados (prefijo, módulo, tag)
# =====================================================
# Un módulo ausente en este despliegue se omite al arrancar.
ROUTER_MOUNTS = (
    ("/api/auth", "auth.routes", "Auth"),
    ("/auth", "auth.routes", "Auth"),  # alias para clientes que llaman /auth/sign-up
    ("/api/test", "routes.test_jwt_routes", "Test"),
    ("/api/users", "routes.user_routes", "Users"),
    ("/api/groups", "routes.group_routes", "Groups"),
    ("/api/contacts", "routes.contact_routes", "Contacts"),
    ("/api/invites", "routes.invite_routes", "Invites"),
)


def load_router(module_name: str):
    if importlib.util.find_spec(module_name) is None:
        return None
    return importlib.import_module(module_name).router


def mount_routers(app: FastAPI, mounts=ROUTER_MOUNTS) -> list:
    mounted = []
    seen = set()
    for prefix, module_name, tag in mounts:
        router = load_router(module_name)
        if router is None:
            logger.info(f" - {prefix} -> {module_name} no disponible, se omite")
            continue
        # Los alias no se duplican en OpenAPI
        app.include_router(router, prefix=prefix, tags=[tag], include_in_schema=module_name not in seen)
        seen.add(module_name)
        mounted.append(prefix)
        logger.info(f" - {prefix} -> {module_name}")
    return mounted


# =====================================================
# * Manejadores de errores -> {"error": ...}
# =====================================================
def register_error_handlers(app: FastAPI, app_settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(f"⚠️ {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail or "Server error"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"⚠️ Validación fallida en {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request data",
                "details": [
                    {"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
                    for e in exc.errors()
                ],
            },
        )

    # Solo llegan aquí los errores de los propios middlewares externos;
    # los de las rutas los convierte ErrorResponseMiddleware
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        return unhandled_error_response(request, exc, app_settings.is_production)


# =====================================================
# * Construcción de la aplicación
# =====================================================
def create_app(
    app_settings: Optional[Settings] = None,
    connection: Optional[MongoConnection] = None,
    policy: Optional[OriginPolicy] = None,
) -> FastAPI:
    app_settings = app_settings or settings
    connection = connection or MongoConnection.from_settings(app_settings)
    policy = policy or OriginPolicy.from_settings(app_settings)

    app = FastAPI(
        title=f"{app_settings.PROJECT_NAME} Backend",
        version=app_settings.VERSION,
    )
    # Estado explícito: /healthz y los repositorios leen de aquí
    app.state.settings = app_settings
    app.state.mongo = connection
    app.state.origin_policy = policy

    # El último añadido es el más externo:
    # seguridad -> compresión -> log de acceso -> CORS -> errores -> rutas
    app.add_middleware(ErrorResponseMiddleware, production=app_settings.is_production)
    app.add_middleware(OriginPolicyCORSMiddleware, policy=policy)
    app.add_middleware(RequestLoggingMiddleware, verbose=not app_settings.is_production)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(health_router, tags=["Health"])
    mount_routers(app)
    register_error_handlers(app, app_settings)
    return app


app = create_app()


def run() -> None:
    """Punto de entrada: conecta Mongo, sirve HTTP y drena ante SIGINT/SIGTERM."""
    logger.info(f"🌍 {settings.PROJECT_NAME} backend iniciando en modo '{settings.ENV}'.")
    sys.exit(Lifecycle(settings, app.state.mongo).run(app))


if __name__ == "__main__":
    run()
