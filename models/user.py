# backend/models/user.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Campo que jamás sale en una respuesta
PASSWORD_FIELD = "hashedPassword"


def normalize_username(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("username is required")
    return value


def normalize_email(value: Optional[str]) -> Optional[str]:
    """Recorta y pasa a minúsculas; vacío cuenta como ausente (null)."""
    if value is None:
        return None
    return value.strip().lower() or None


class User(BaseModel):
    """Documento de la colección ``users`` (nombres de campo tal cual se guardan)."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    username: str
    email: Optional[str] = None
    hashed_password: str = Field(alias=PASSWORD_FIELD, repr=False)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("username")
    @classmethod
    def trim_username(cls, value: str) -> str:
        return normalize_username(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: Optional[str]) -> Optional[str]:
        return normalize_email(value)

    @field_validator("hashed_password")
    @classmethod
    def require_password(cls, value: str) -> str:
        if not value:
            raise ValueError("hashedPassword is required")
        return value

    def to_document(self) -> dict:
        """Documento listo para insertar (sin ``_id``; email ausente = null)."""
        return self.model_dump(by_alias=True, exclude={"id"})


class UserUpdate(BaseModel):
    """Cuerpo de PATCH /api/users/{id}: solo se tocan los campos enviados."""

    username: Optional[str] = None
    email: Optional[str] = None
