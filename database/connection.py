# backend/database/connection.py
import logging
from enum import IntEnum
from typing import Callable, Optional

from pymongo import MongoClient, monitoring
from pymongo.database import Database
from pymongo.errors import OperationFailure, PyMongoError

from errors import StoreUnavailable

LOG = logging.getLogger(__name__)

AUTHENTICATION_FAILED = 18


# ============================================================
# 🔢 ESTADO DE LA CONEXIÓN (el valor que expone /healthz)
# ============================================================
class ConnectionState(IntEnum):
    DISCONNECTED = 0
    CONNECTED = 1
    CONNECTING = 2
    DISCONNECTING = 3
    UNAUTHORIZED = 4


# ============================================================
# 👂 LISTENERS DE PYMONGO
# ============================================================
class TopologyEventLogger(monitoring.TopologyListener):
    """Traduce los cambios de topología en eventos conectado/desconectado."""

    def __init__(self, connection: "MongoConnection"):
        self.connection = connection

    def opened(self, event):
        LOG.debug(f"Topología Mongo abierta ({event.topology_id})")

    def description_changed(self, event):
        was_up = event.previous_description.has_writable_server()
        is_up = event.new_description.has_writable_server()
        if was_up == is_up:
            return
        if is_up:
            self.connection.handle_topology_up()
        else:
            self.connection.handle_topology_down(_first_server_error(event.new_description))

    def closed(self, event):
        LOG.debug(f"Topología Mongo cerrada ({event.topology_id})")


def _first_server_error(description) -> Optional[Exception]:
    for server in description.server_descriptions().values():
        if server.error is not None:
            return server.error
    return None


class CommandLogger(monitoring.CommandListener):
    """Modo debug: cada comando enviado a Mongo queda en el log."""

    def started(self, event):
        LOG.debug(f"Mongo {event.command_name} -> {event.database_name} (request {event.request_id})")

    def succeeded(self, event):
        LOG.debug(
            f"Mongo {event.command_name} ok en {event.duration_micros / 1000:.1f} ms "
            f"(request {event.request_id})"
        )

    def failed(self, event):
        LOG.debug(
            f"Mongo {event.command_name} falló en {event.duration_micros / 1000:.1f} ms: "
            f"{event.failure} (request {event.request_id})"
        )


# ============================================================
# 🔌 CONEXIÓN A MONGO
# ============================================================
class MongoConnection:
    """
    Dueño del cliente Mongo y de su estado.

    No conecta al construirse: ``connect()`` hace el handshake (``ping``) y
    ``close()`` libera el pool sin forzar. Los cambios de topología posteriores
    solo se registran en el log y en ``state``.
    """

    def __init__(
        self,
        uri: str,
        db_name: str,
        server_selection_timeout_ms: int = 15000,
        max_pool_size: int = 10,
        debug: bool = False,
        client_factory: Callable[..., MongoClient] = MongoClient,
    ):
        self.uri = uri
        self.db_name = db_name
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.max_pool_size = max_pool_size
        self.debug = debug
        self._client_factory = client_factory
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None
        self._state = ConnectionState.DISCONNECTED

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "MongoConnection":
        return cls(
            settings.MONGODB_URI,
            settings.MONGO_DB,
            server_selection_timeout_ms=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
            max_pool_size=settings.MONGO_MAX_POOL_SIZE,
            debug=not settings.is_production,
            **kwargs,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def database(self) -> Database:
        if self._database is None:
            raise StoreUnavailable()
        return self._database

    def collection(self, name: str):
        return self.database[name]

    # --------------------------------------------------------
    # 🔹 Handshake
    # --------------------------------------------------------
    def connect(self) -> Database:
        self._state = ConnectionState.CONNECTING
        listeners = [TopologyEventLogger(self)]
        if self.debug:
            listeners.append(CommandLogger())

        client = None
        try:
            client = self._client_factory(
                self.uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                maxPoolSize=self.max_pool_size,
                event_listeners=listeners,
            )
            client.admin.command("ping")
        except OperationFailure as e:
            self._abort(client, ConnectionState.UNAUTHORIZED if e.code == AUTHENTICATION_FAILED
                        else ConnectionState.DISCONNECTED)
            raise
        except PyMongoError:
            self._abort(client, ConnectionState.DISCONNECTED)
            raise

        self._client = client
        self._database = client[self.db_name]
        self._state = ConnectionState.CONNECTED
        LOG.info(f"✅ MongoDB connected: {self.db_name}")
        return self._database

    def _abort(self, client: Optional[MongoClient], state: ConnectionState):
        if client is not None:
            client.close()
        self._state = state

    # --------------------------------------------------------
    # 🔹 Cierre (sin forzar: las operaciones en curso terminan)
    # --------------------------------------------------------
    def close(self):
        if self._client is None:
            self._state = ConnectionState.DISCONNECTED
            return
        self._state = ConnectionState.DISCONNECTING
        try:
            self._client.close()
        finally:
            self._client = None
            self._database = None
            self._state = ConnectionState.DISCONNECTED
        LOG.info("🔌 Conexión a MongoDB cerrada")

    # --------------------------------------------------------
    # 🔹 Eventos de topología (hilos de monitoreo de pymongo)
    # --------------------------------------------------------
    def handle_topology_up(self):
        if self._state == ConnectionState.DISCONNECTED and self._client is not None:
            self._state = ConnectionState.CONNECTED
            LOG.info(f"🔄 Reconectado a MongoDB {self.db_name}")
        elif self._state == ConnectionState.CONNECTING:
            LOG.info(f"Connected to MongoDB {self.db_name}.")

    def handle_topology_down(self, error: Optional[Exception] = None):
        if self._state in (ConnectionState.DISCONNECTING, ConnectionState.DISCONNECTED):
            return
        if error is not None:
            LOG.error(f"❌ MongoDB connection error: {error}")
        if self._state == ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
            LOG.warning("⚠️ MongoDB disconnected")
