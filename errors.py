# backend/errors.py
"""Errores de nivel petición: se convierten en JSON ``{"error": ...}``.

Los manejadores de ``main.py`` usan ``status_code`` y ``message``; cualquier
excepción fuera de esta jerarquía termina como 500.
"""
from typing import Optional


class AppError(Exception):
    """Base de los errores que la API devuelve al cliente."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class DuplicateKey(AppError):
    """Violación de un índice único (username o email)."""

    status_code = 409

    def __init__(self, field: Optional[str] = None):
        message = f"Duplicate value for '{field}'" if field else "Duplicate key"
        super().__init__(message)
        self.field = field


class StoreUnavailable(AppError):
    """La petición necesita Mongo y no hay cliente conectado."""

    status_code = 503

    def __init__(self, message: str = "Database not connected"):
        super().__init__(message)
