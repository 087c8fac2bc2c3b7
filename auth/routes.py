# backend/auth/routes.py
from fastapi import APIRouter, Depends, Request, status

from repositories.user_repository import UserRepository, get_user_repository
from .controllers import register_user
from .models import UserRegister

router = APIRouter()

# ------------------------------------------------------------
# 🔹 Sign-up
# ------------------------------------------------------------
@router.post("/sign-up", status_code=status.HTTP_201_CREATED, summary="Registrar nuevo usuario")
def sign_up(data: UserRegister, request: Request, repo: UserRepository = Depends(get_user_repository)):
    return register_user(repo, data, request.app.state.settings.BCRYPT_ROUNDS)
