# backend/lifecycle.py
"""
Arranque y apagado ordenado del proceso.

    IDLE -> CONNECTING -> CONNECTED -> SERVING -> DRAINING -> CLOSED
                 \\-> FAILED

Mongo se conecta antes de abrir el listener HTTP. Al apagar, el listener
se libera primero y Mongo después, en cualquier camino de salida.
"""
import asyncio
import contextlib
import logging
import signal
import threading
from enum import Enum
from typing import Callable, Dict, Optional

import uvicorn
from pymongo.errors import PyMongoError
from uvicorn.server import HANDLED_SIGNALS

from database.connection import MongoConnection
from repositories.user_repository import ensure_user_indexes

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class LifecycleState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SERVING = "serving"
    DRAINING = "draining"
    CLOSED = "closed"
    FAILED = "failed"


# Estados en los que una señal corta el arranque en seco
_PRE_SERVING = (LifecycleState.IDLE, LifecycleState.CONNECTING, LifecycleState.CONNECTED)


class ShutdownRequested(Exception):
    """Señal recibida antes de que el listener estuviera activo."""


# ============================================================
# 🌐 SERVIDOR UVICORN CON DRENADO
# ============================================================
class DrainingServer(uvicorn.Server):
    """uvicorn.Server que informa al ciclo de vida de bind y señales."""

    def __init__(self, config: uvicorn.Config, lifecycle: "Lifecycle"):
        super().__init__(config)
        self.lifecycle = lifecycle

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self.lifecycle.mark_serving()

    @contextlib.contextmanager
    def capture_signals(self):
        # Como uvicorn, pero sin re-emitir la señal al salir: el código de
        # salida lo decide Lifecycle.run()
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        original = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in original.items():
                signal.signal(sig, handler)

    def handle_exit(self, sig, frame) -> None:
        self.lifecycle.begin_drain(signal.Signals(sig).name)
        # uvicorn: primera señal -> should_exit, segundo SIGINT -> force_exit
        super().handle_exit(sig, frame)


# ============================================================
# ♻️ CICLO DE VIDA DEL PROCESO
# ============================================================
class Lifecycle:
    def __init__(
        self,
        settings,
        connection: MongoConnection,
        server_factory: Callable[..., DrainingServer] = DrainingServer,
    ):
        self.settings = settings
        self.connection = connection
        self._server_factory = server_factory
        self.server: Optional[DrainingServer] = None
        self.state = LifecycleState.IDLE

    # --------------------------------------------------------
    # 🔹 Transiciones
    # --------------------------------------------------------
    def mark_serving(self) -> None:
        if self.state is LifecycleState.CONNECTED:
            self.state = LifecycleState.SERVING
        LOG.info(f"🚀 API escuchando en puerto {self.settings.PORT} ({self.settings.ENV})")

    def begin_drain(self, signal_name: str) -> bool:
        """Serving -> Draining. Repetir la señal no cambia el estado."""
        if self.state in (LifecycleState.DRAINING, LifecycleState.CLOSED):
            LOG.warning(f"⚠️ {signal_name} recibida de nuevo; el apagado ya está en curso")
            return False
        LOG.info(f"🛑 {signal_name} received: closing HTTP server & MongoDB...")
        self.state = LifecycleState.DRAINING
        return True

    def _on_early_signal(self, signum, frame) -> None:
        pre_serving = self.state in _PRE_SERVING
        self.begin_drain(signal.Signals(signum).name)
        if pre_serving:
            raise ShutdownRequested()

    # --------------------------------------------------------
    # 🔹 Ejecución completa: devuelve el código de salida
    # --------------------------------------------------------
    def run(self, app) -> int:
        if not self.settings.MONGODB_URI:
            LOG.error("❌ Missing MONGODB_URI in environment")
            self.state = LifecycleState.FAILED
            return EXIT_FAILURE

        previous_handlers = self._install_signal_handlers()
        try:
            with contextlib.ExitStack() as releases:
                # Registrado primero -> se libera al final, tras el listener
                releases.callback(self._release_store)
                if not self._connect():
                    return EXIT_FAILURE
                return self._serve(app)
        except ShutdownRequested:
            return EXIT_OK
        finally:
            self._restore_signal_handlers(previous_handlers)

    def _connect(self) -> bool:
        self.state = LifecycleState.CONNECTING
        LOG.info(f"Conectando a MongoDB ({self.connection.db_name})...")
        try:
            self.connection.connect()
        except PyMongoError as e:
            self.state = LifecycleState.FAILED
            LOG.error(f"❌ Failed to connect to MongoDB: {e}")
            return False
        self.state = LifecycleState.CONNECTED
        ensure_user_indexes(self.connection)
        return True

    def _serve(self, app) -> int:
        self.server = self._server_factory(self._server_config(app), self)
        asyncio.run(self.server.serve())
        if not self.server.started:
            LOG.error("❌ El servidor HTTP no llegó a arrancar")
            self.state = LifecycleState.FAILED
            return EXIT_FAILURE
        return EXIT_OK

    def _server_config(self, app) -> uvicorn.Config:
        return uvicorn.Config(
            app,
            host=self.settings.HOST,
            port=self.settings.PORT,
            proxy_headers=True,
            forwarded_allow_ips=self.settings.FORWARDED_ALLOW_IPS,
            timeout_graceful_shutdown=self.settings.SHUTDOWN_TIMEOUT,
            log_config=None,
        )

    def _release_store(self) -> None:
        if self.connection.is_open:
            self.connection.close()
        if self.state is not LifecycleState.FAILED:
            self.state = LifecycleState.CLOSED
            LOG.info("HTTP server and MongoDB connections closed")

    # --------------------------------------------------------
    # 🔹 Señales antes de que uvicorn tome el control
    # --------------------------------------------------------
    def _install_signal_handlers(self) -> Dict[int, object]:
        if threading.current_thread() is not threading.main_thread():
            return {}
        return {sig: signal.signal(sig, self._on_early_signal) for sig in HANDLED_SIGNALS}

    @staticmethod
    def _restore_signal_handlers(previous: Dict[int, object]) -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
