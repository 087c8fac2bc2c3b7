# backend/auth/controllers.py
from pydantic import ValidationError
import logging

from errors import AppError
from models.user import User
from repositories.user_repository import UserRepository, serialize_user
from .models import UserRegister
from .utils import hash_password

LOG = logging.getLogger("auth.controllers")

# =====================================================
# 🔹 Registrar usuario (sign-up)
# =====================================================
def register_user(repo: UserRepository, data: UserRegister, rounds: int = 12) -> dict:
    """Crea el usuario con el password hasheado y devuelve su vista pública.

    DuplicateKey (409) sube tal cual si el username o el email ya existen.
    """
    try:
        candidate = User(
            username=data.username,
            email=data.email,
            hashed_password=hash_password(data.password, rounds),
        )
    except ValidationError as e:
        raise AppError(e.errors()[0]["msg"], 400) from e

    LOG.info(f"🧩 Registrando usuario: {candidate.username}")
    return serialize_user(repo.create(candidate))
