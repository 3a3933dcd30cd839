"""
Connections
===========

Registry of target database connections and the resolver used by the
pipeline to pick one per request.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.engine import URL, make_url

from chatbi.exceptions import ConnectionNotFoundError
from chatbi.models import utcnow

logger = structlog.get_logger(__name__)

DEFAULT_CONNECTION_NAME = "Default database"


@dataclass
class DatabaseConnection:
    """A target database the pipeline can introspect and query."""

    id: str
    name: str
    url: str
    description: str = ""
    is_active: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_parts(
        cls,
        name: str,
        host: str,
        database_name: str,
        username: str,
        password: str = "",
        port: int = 3306,
        charset: str = "utf8mb4",
        description: str = "",
        connection_id: Optional[str] = None,
    ) -> "DatabaseConnection":
        """Build a MySQL connection from its parts."""
        url = URL.create(
            "mysql+pymysql",
            username=username,
            password=password or None,
            host=host,
            port=port,
            database=database_name,
            query={"charset": charset},
        )
        return cls(
            id=connection_id or str(uuid.uuid4()),
            name=name,
            url=url.render_as_string(hide_password=False),
            description=description,
        )

    @property
    def sqlalchemy_url(self) -> URL:
        return make_url(self.url)

    @property
    def host(self) -> str:
        return self.sqlalchemy_url.host or "localhost"

    @property
    def port(self) -> Optional[int]:
        return self.sqlalchemy_url.port

    @property
    def database_name(self) -> str:
        return self.sqlalchemy_url.database or ""

    @property
    def dialect(self) -> str:
        return self.sqlalchemy_url.get_backend_name()

    def to_public_dict(self) -> dict:
        """Connection details without credentials."""
        return {
            "id": self.id,
            "name": self.name,
            "dialect": self.dialect,
            "host": self.host,
            "port": self.port,
            "database_name": self.database_name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


class ConnectionRegistry:
    """
    In-process connection registry.

    Exactly one registered connection is active at a time. When a default
    URL is given and the registry is empty, a default connection is created
    from it and marked active.
    """

    def __init__(self, default_url: Optional[str] = None) -> None:
        self._connections: dict[str, DatabaseConnection] = {}
        self._active_id: Optional[str] = None
        self._lock = threading.Lock()
        self.default_url = default_url

    def _seed_default(self) -> None:
        if self._connections or not self.default_url:
            return
        connection = DatabaseConnection(
            id=str(uuid.uuid4()),
            name=DEFAULT_CONNECTION_NAME,
            url=self.default_url,
            description="Created from CHATBI_DATABASE_URL",
            is_active=True,
        )
        self._connections[connection.id] = connection
        self._active_id = connection.id
        logger.info("default_connection_created", connection_id=connection.id, host=connection.host)

    def register(self, connection: DatabaseConnection, activate: bool = False) -> DatabaseConnection:
        """Add or replace a connection. The first connection becomes active."""
        with self._lock:
            self._seed_default()
            self._connections[connection.id] = connection
            if activate or self._active_id is None:
                self._activate(connection.id)
        return connection

    def get(self, connection_id: str) -> Optional[DatabaseConnection]:
        with self._lock:
            self._seed_default()
            return self._connections.get(connection_id)

    def list_connections(self) -> list[DatabaseConnection]:
        with self._lock:
            self._seed_default()
            return list(self._connections.values())

    def set_active(self, connection_id: str) -> DatabaseConnection:
        with self._lock:
            if connection_id not in self._connections:
                raise ConnectionNotFoundError(connection_id)
            return self._activate(connection_id)

    def remove(self, connection_id: str) -> None:
        with self._lock:
            if self._connections.pop(connection_id, None) is None:
                raise ConnectionNotFoundError(connection_id)
            if self._active_id == connection_id:
                self._active_id = None
                remaining = next(iter(self._connections), None)
                if remaining is not None:
                    self._activate(remaining)

    def active(self) -> DatabaseConnection:
        """The process's designated active connection."""
        with self._lock:
            self._seed_default()
            if self._active_id is None:
                raise ConnectionNotFoundError("<active>")
            return self._connections[self._active_id]

    def resolve(self, connection_id: Optional[str] = None) -> DatabaseConnection:
        """
        Resolve a connection for one request.

        Args:
            connection_id: Explicit connection id, or None for the active one

        Returns:
            The matching connection

        Raises:
            ConnectionNotFoundError: If an explicit id is unknown
        """
        if not connection_id:
            return self.active()
        connection = self.get(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        return connection

    def _activate(self, connection_id: str) -> DatabaseConnection:
        for connection in self._connections.values():
            connection.is_active = connection.id == connection_id
        self._active_id = connection_id
        return self._connections[connection_id]
