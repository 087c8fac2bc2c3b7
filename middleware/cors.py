# backend/middleware/cors.py
"""CORSMiddleware de Starlette gobernado por ``OriginPolicy``.

Un origen denegado recibe un 403 JSON antes de llegar a cualquier ruta,
tanto en peticiones simples como en preflight. Un preflight de un origen
permitido siempre recibe 204 con los métodos y cabeceras fijos.
"""
import logging

from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

from middleware.origin_policy import ALLOWED_HEADERS, ALLOWED_METHODS, Decision, OriginPolicy

LOG = logging.getLogger(__name__)

DENIED_MESSAGE = "CORS: origin not allowed"
DENIED_STATUS = 403
PREFLIGHT_STATUS = 204


class OriginPolicyCORSMiddleware(CORSMiddleware):
    def __init__(self, app: ASGIApp, policy: OriginPolicy) -> None:
        # allow_origins vacío: la decisión la toma la política, nunca "*"
        super().__init__(
            app,
            allow_origins=(),
            allow_methods=ALLOWED_METHODS,
            allow_headers=ALLOWED_HEADERS,
            allow_credentials=True,
        )
        self.policy = policy

    def is_allowed_origin(self, origin: str) -> bool:
        try:
            return self.policy.decide(origin) is Decision.ALLOW
        except Exception:
            LOG.exception(f"❌ Error evaluando origen CORS {origin!r}; se deniega")
            return False

    def preflight_response(self, request_headers: Headers) -> Response:
        # El origen ya pasó la política: se responden las listas fijas y el
        # navegador decide si el método o las cabeceras pedidas entran
        headers = dict(self.preflight_headers)
        headers["Access-Control-Allow-Origin"] = request_headers["origin"]
        return Response(status_code=PREFLIGHT_STATUS, headers=headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if not origin:
            await self.app(scope, receive, send)
            return

        if not self.is_allowed_origin(origin):
            response = JSONResponse({"error": DENIED_MESSAGE}, status_code=DENIED_STATUS)
            await response(scope, receive, send)
            return

        await super().__call__(scope, receive, send)
