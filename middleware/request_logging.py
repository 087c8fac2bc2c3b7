# backend/middleware/request_logging.py
import logging
import time
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

ACCESS_LOG = logging.getLogger("access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log de acceso por petición.

    - "tiny" (producción): método, ruta, status y duración.
    - "dev": además IP del cliente y tamaño de la respuesta.
    """

    def __init__(self, app: ASGIApp, verbose: bool = True):
        super().__init__(app)
        self.verbose = verbose

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        if self.verbose:
            client = request.client.host if request.client else "-"
            size = response.headers.get("content-length", "-")
            ACCESS_LOG.info(
                "%s %s %s %s %.1f ms - %s",
                client, request.method, request.url.path,
                response.status_code, elapsed_ms, size,
            )
        else:
            ACCESS_LOG.info(
                "%s %s %s %.1f ms",
                request.method, request.url.path, response.status_code, elapsed_ms,
            )
        return response
