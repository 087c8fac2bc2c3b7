# backend/repositories/user_repository.py
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone
from fastapi import Request
from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError
from typing import Any, Dict, List, Mapping, Optional
import logging

from errors import AppError, DuplicateKey
from models.user import PASSWORD_FIELD, User, normalize_email, normalize_username

USERS_COLLECTION = "users"
LOG = logging.getLogger(__name__)


# ------------------------------------------------------------
# 🔹 Serialización segura de usuario
# ------------------------------------------------------------
def serialize_user(user: Optional[Mapping[str, Any]]) -> Optional[dict]:
    """Vista externa: ``_id`` como str y nunca el hash del password.

    Sirve para documentos completos y para proyecciones parciales; no añade
    campos que no vinieran en el documento.
    """
    if not user:
        return None
    user_copy = {key: value for key, value in user.items() if key != PASSWORD_FIELD}
    if "_id" in user_copy:
        user_copy["_id"] = str(user_copy["_id"])
    return user_copy


def _object_id(user_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


def _duplicate_field(error: DuplicateKeyError) -> Optional[str]:
    details = error.details or {}
    key = details.get("keyPattern") or details.get("keyValue") or {}
    return next(iter(key), None)


class UserRepository:
    def __init__(self, collection: Collection):
        self.collection = collection

    # ------------------------------------------------------------
    # 🔹 Índices: username único, email único solo si existe
    # ------------------------------------------------------------
    def ensure_indexes(self):
        self.collection.create_index([("username", ASCENDING)], unique=True, name="username_1")
        self.collection.create_index(
            [("email", ASCENDING)],
            unique=True,
            name="email_1",
            partialFilterExpression={"email": {"$type": "string"}},
        )
        LOG.debug("Índices de usuarios verificados")

    # ------------------------------------------------------------
    # 🔹 Crear usuario
    # ------------------------------------------------------------
    def create(self, candidate: User) -> dict:
        now = datetime.now(timezone.utc)
        doc = candidate.to_document()
        doc["createdAt"] = now
        doc["updatedAt"] = now
        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            LOG.warning(f"⚠️ Usuario duplicado ({field or 'clave única'}): {candidate.username}")
            raise DuplicateKey(field) from e
        doc["_id"] = result.inserted_id
        LOG.info(f"✅ Usuario creado con ID {result.inserted_id}")
        return doc

    # ------------------------------------------------------------
    # 🔹 Lecturas
    # ------------------------------------------------------------
    def get_by_id(self, user_id: str, projection: Optional[Dict[str, Any]] = None) -> Optional[dict]:
        oid = _object_id(user_id)
        if oid is None:
            LOG.warning(f"ID inválido de usuario: {user_id}")
            return None
        return self.collection.find_one({"_id": oid}, projection)

    def get_by_username(self, username: str) -> Optional[dict]:
        return self.collection.find_one({"username": username.strip()})

    def get_all(self, projection: Optional[Dict[str, Any]] = None) -> List[dict]:
        return list(self.collection.find({}, projection).sort("createdAt", ASCENDING))

    # ------------------------------------------------------------
    # 🔹 Actualizar usuario (refresca updatedAt)
    # ------------------------------------------------------------
    def update(self, user_id: str, changes: Mapping[str, Any]) -> Optional[dict]:
        oid = _object_id(user_id)
        if oid is None:
            return None

        fields = {key: value for key, value in changes.items() if key not in ("_id", "createdAt")}
        try:
            if "username" in fields:
                fields["username"] = normalize_username(fields["username"])
            if "email" in fields:
                fields["email"] = normalize_email(fields["email"])
        except ValueError as e:
            raise AppError(str(e), 400) from e
        fields["updatedAt"] = datetime.now(timezone.utc)

        try:
            return self.collection.find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise DuplicateKey(_duplicate_field(e)) from e

    # ------------------------------------------------------------
    # 🔹 Eliminar usuario por ID
    # ------------------------------------------------------------
    def delete(self, user_id: str) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        result = self.collection.delete_one({"_id": oid})
        if result.deleted_count > 0:
            LOG.info(f"✅ Usuario eliminado con ID {user_id}")
            return True
        LOG.warning(f"⚠️ Usuario no encontrado para eliminar: {user_id}")
        return False


def ensure_user_indexes(connection) -> None:
    """Se llama una vez tras conectar; un fallo no detiene el arranque."""
    try:
        UserRepository(connection.collection(USERS_COLLECTION)).ensure_indexes()
    except PyMongoError as e:
        LOG.warning(f"⚠️ No se pudieron crear los índices de usuarios: {e}")


def get_user_repository(request: Request) -> UserRepository:
    """Dependencia FastAPI: repositorio sobre la conexión del proceso."""
    return UserRepository(request.app.state.mongo.collection(USERS_COLLECTION))
