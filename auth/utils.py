# backend/auth/utils.py
import bcrypt

# bcrypt no acepta menos de 4 rondas
MIN_ROUNDS = 4

# =====================================================
# 🔹 Hashing (coste = BCRYPT_ROUNDS de la configuración)
# =====================================================
def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=max(rounds, MIN_ROUNDS))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
