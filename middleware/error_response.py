# backend/middleware/error_response.py
"""
Errores no controlados -> JSON ``{"error": ...}`` dentro de la pila de middleware.

Va por dentro de CORS y de las cabeceras de seguridad, así que un 500 lleva
las mismas cabeceras que cualquier otra respuesta y el navegador puede leer
el cuerpo.
"""
import logging
from typing import Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

LOG = logging.getLogger(__name__)

GENERIC_MESSAGE = "Server error"


def unhandled_error_response(request: Request, exc: Exception, production: bool) -> JSONResponse:
    """Status del error si trae uno (``status_code``/``status``), si no 500."""
    status_code = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if not isinstance(status_code, int):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if production:
        # Sin traza en producción
        LOG.error(f"❌ Error no controlado en {request.method} {request.url.path}: {type(exc).__name__}")
        message = GENERIC_MESSAGE
    else:
        LOG.error(f"❌ Error no controlado en {request.method} {request.url.path}: {exc}", exc_info=exc)
        message = str(exc) or GENERIC_MESSAGE
    return JSONResponse(status_code=status_code, content={"error": message})


class ErrorResponseMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, production: bool = False):
        super().__init__(app)
        self.production = production

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return unhandled_error_response(request, exc, self.production)
