# backend/routes/health_routes.py
from fastapi import APIRouter, Request

router = APIRouter()

# ------------------------------------------------------------
# 🔹 Healthcheck: modo de ejecución + estado de Mongo (0..4)
# ------------------------------------------------------------
@router.get("/healthz", summary="Estado del servicio")
def healthz(request: Request):
    state = request.app.state
    return {"ok": True, "env": state.settings.ENV, "db": int(state.mongo.state)}
