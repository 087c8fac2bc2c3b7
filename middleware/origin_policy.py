# backend/middleware/origin_policy.py
"""
Política de orígenes CORS.

Combina una allowlist exacta (normalizada sin "/" final) con un patrón
opcional que se evalúa sobre el hostname del origen. El patrón se compila
una sola vez al construir la política.
"""
import logging
import re
from enum import Enum
from typing import Iterable, Optional, Pattern, Tuple
from urllib.parse import urlsplit

LOG = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
ALLOWED_HEADERS = ("Content-Type", "Authorization")


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def normalize_origin(origin: str) -> str:
    return origin.rstrip("/")


def parse_allowlist(raw: str) -> Tuple[str, ...]:
    """Lista separada por comas -> orígenes recortados, sin "/" final, sin vacíos."""
    entries = []
    for item in (raw or "").split(","):
        entry = normalize_origin(item.strip())
        if entry and entry not in entries:
            entries.append(entry)
    return tuple(entries)


def origin_hostname(origin: str) -> Optional[str]:
    """Hostname de un origen, o None si no parece una URL."""
    try:
        parts = urlsplit(origin)
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    return hostname


class OriginPolicy:
    def __init__(self, allowlist: Iterable[str] = (), pattern: Optional[Pattern[str]] = None):
        self.allowlist = tuple(normalize_origin(o) for o in allowlist)
        self._exact = frozenset(self.allowlist)
        self.pattern = pattern

    @classmethod
    def from_config(cls, origins: str, pattern: Optional[str] = None) -> "OriginPolicy":
        # re.error con un patrón inválido: error fatal de configuración
        compiled = re.compile(pattern) if pattern else None
        return cls(parse_allowlist(origins), compiled)

    @classmethod
    def from_settings(cls, settings) -> "OriginPolicy":
        return cls.from_config(settings.cors_origins_source, settings.CORS_ALLOW_REGEX)

    def matches_pattern(self, origin: str) -> bool:
        if self.pattern is None:
            return False
        hostname = origin_hostname(origin)
        if hostname is None:
            return False
        return self.pattern.search(hostname) is not None

    def decide(self, origin: Optional[str]) -> Decision:
        # Sin cabecera Origin: curl, Postman, servidor a servidor
        if not origin:
            return Decision.ALLOW

        if normalize_origin(origin) in self._exact:
            return Decision.ALLOW

        if self.matches_pattern(origin):
            return Decision.ALLOW

        LOG.warning(f"⚠️ CORS: origin not allowed -> {origin}")
        return Decision.DENY

    def is_allowed(self, origin: Optional[str]) -> bool:
        return self.decide(origin) is Decision.ALLOW
