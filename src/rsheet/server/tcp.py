"""TCP transport — accepts exactly one client and speaks the line protocol to it."""

from __future__ import annotations

import socket

from rsheet.contracts.common import TransportError
from rsheet.server.stdio import LineReader, LineWriter


class TcpManager:
    """Listens on host:port and hands out the first accepted connection."""

    def __init__(self, host: str = "127.0.0.1", port: int = 6991, *, fmt: str = "json") -> None:
        self.host = host
        self.port = port
        self.fmt = fmt
        self._listener: socket.socket | None = None
        self._conn: socket.socket | None = None

    @property
    def address(self) -> tuple[str, int]:
        if self._listener is None:
            raise TransportError("Not listening")
        host, port = self._listener.getsockname()[:2]
        return host, port

    def listen(self) -> tuple[str, int]:
        """Bind the listening socket. Returns the bound (host, port)."""
        if self._listener is None:
            try:
                self._listener = socket.create_server((self.host, self.port))
            except OSError as e:
                raise TransportError(f"Cannot listen on {self.host}:{self.port}: {e}") from e
        return self.address

    def accept_new_connection(self) -> tuple[LineReader, LineWriter]:
        self.listen()
        assert self._listener is not None
        try:
            conn, _ = self._listener.accept()
        except OSError as e:
            raise TransportError(f"Accept failed: {e}") from e
        finally:
            # one connection per server lifetime
            self._listener.close()
        self._conn = conn
        reader = LineReader(conn.makefile("r", encoding="utf-8", newline="\n"))
        writer = LineWriter(conn.makefile("w", encoding="utf-8", newline="\n"), self.fmt)
        return reader, writer

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._listener is not None:
            self._listener.close()
