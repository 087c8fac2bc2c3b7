# backend/routes/user_routes.py
from fastapi import APIRouter, Depends, HTTPException
from models.user import UserUpdate
from repositories.user_repository import (
    UserRepository,
    get_user_repository,
    serialize_user,
)
import logging

router = APIRouter()
LOG = logging.getLogger("routes.users")

# ------------------------------------------------------------
# 🔹 Listar usuarios
# ------------------------------------------------------------
@router.get("/", summary="Obtener lista de usuarios")
def list_users(repo: UserRepository = Depends(get_user_repository)):
    users = [serialize_user(user) for user in repo.get_all()]
    if not users:
        LOG.info("No hay usuarios registrados.")
    return users

# ------------------------------------------------------------
# 🔹 Obtener usuario por username
# ------------------------------------------------------------
@router.get("/by-username/{username}", summary="Obtener usuario por username")
def get_user_by_username(username: str, repo: UserRepository = Depends(get_user_repository)):
    user = repo.get_by_username(username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_user(user)

# ------------------------------------------------------------
# 🔹 Obtener usuario por ID
# ------------------------------------------------------------
@router.get("/{user_id}", summary="Obtener usuario por ID")
def get_user(user_id: str, repo: UserRepository = Depends(get_user_repository)):
    user = repo.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_user(user)

# ------------------------------------------------------------
# 🔹 Actualizar username / email
# ------------------------------------------------------------
@router.patch("/{user_id}", summary="Actualizar usuario")
def update_user(user_id: str, changes: UserUpdate, repo: UserRepository = Depends(get_user_repository)):
    user = repo.update(user_id, changes.model_dump(exclude_unset=True))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    LOG.info(f"✅ Usuario actualizado: {user_id}")
    return serialize_user(user)

# ------------------------------------------------------------
# 🔹 Eliminar usuario
# ------------------------------------------------------------
@router.delete("/{user_id}", summary="Eliminar usuario por ID")
def remove_user(user_id: str, repo: UserRepository = Depends(get_user_repository)):
    if not repo.delete(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted"}
