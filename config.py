# backend/config.py
import os
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional

# ============================================================
# 🌍 DETECTAR ENTORNO Y CARGAR .env CORRESPONDIENTE
# ============================================================
ENV = os.getenv("ENV", "development")

env_file = ".env.production" if ENV == "production" else ".env.development"
dotenv_path = Path(__file__).resolve().parent / env_file
load_dotenv(dotenv_path)


def _optional_int(value: Optional[str]) -> Optional[int]:
    """Convierte un valor opcional del entorno; vacío significa "sin límite"."""
    if value is None or not value.strip():
        return None
    return int(value)


# ============================================================
# ⚙️ CONFIGURACIÓN GENERAL
# ============================================================
class Settings:
    """Valores leídos del entorno en el momento de instanciar."""

    def __init__(self):
        self.PROJECT_NAME: str = os.getenv("PROJECT_NAME", "OrbitCRM")
        self.VERSION: str = os.getenv("VERSION", "1.0")
        self.ENV: str = os.getenv("ENV", "development")

        # 🔹 Servidor HTTP
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "3000"))
        self.FORWARDED_ALLOW_IPS: str = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")
        self.SHUTDOWN_TIMEOUT: Optional[int] = _optional_int(os.getenv("SHUTDOWN_TIMEOUT", "30"))

        # 🔹 Mongo (obligatorio: sin URI no se arranca)
        self.MONGODB_URI: str = os.getenv("MONGODB_URI", "").strip()
        self.MONGO_DB: str = os.getenv("MONGO_DB", "OrbitCRMDatabase")
        self.MONGO_SERVER_SELECTION_TIMEOUT_MS: int = int(
            os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "15000")
        )
        self.MONGO_MAX_POOL_SIZE: int = int(os.getenv("MONGO_MAX_POOL_SIZE", "10"))

        # 🔹 CORS
        self.CLIENT_URL: str = os.getenv("CLIENT_URL", "https://orbitcrm.netlify.app/")
        self.CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")
        self.CORS_ALLOW_REGEX: Optional[str] = os.getenv("CORS_ALLOW_REGEX") or None

        # 🔹 Otros
        self.DEBUG: bool = self.ENV != "production"
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if self.DEBUG else "INFO")

        # 🔹 Auth
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def cors_origins_source(self) -> str:
        # CORS_ORIGINS manda; si está vacío se usa la URL del cliente
        return self.CORS_ORIGINS or self.CLIENT_URL


settings = Settings()
