"""Server loop: read one line, dispatch it, write one reply, repeat."""

from __future__ import annotations

from typing import Protocol

from rsheet.contracts.common import ConnectionClosed, Reply, TransportError
from rsheet.engine.dispatcher import Dispatcher
from rsheet.observe.events import EventEmitter, TraceRecorder


class Reader(Protocol):
    def read_message(self) -> str: ...


class Writer(Protocol):
    def write_message(self, reply: Reply) -> None: ...


class Manager(Protocol):
    def accept_new_connection(self) -> tuple[Reader, Writer]: ...


class SheetServer:
    """Services one connection at a time against a single CellStore."""

    def __init__(
        self,
        dispatcher: Dispatcher | None = None,
        *,
        emitter: EventEmitter | None = None,
        trace: TraceRecorder | None = None,
    ) -> None:
        self.dispatcher = dispatcher or Dispatcher()
        self.emitter = emitter or EventEmitter()
        self.trace = trace

    def run(self, manager: Manager) -> int:
        """Accept a single connection and serve it until the transport ends.

        Returns the number of commands handled. End of input is a normal
        shutdown; any other TransportError propagates.
        """
        self.emitter.emit("server.started")
        reader, writer = manager.accept_new_connection()
        self.emitter.emit("connection.accepted")
        try:
            return self.serve_connection(reader, writer)
        finally:
            self.emitter.emit("server.stopped")

    def serve_connection(self, reader: Reader, writer: Writer) -> int:
        handled = 0
        while True:
            try:
                line = reader.read_message()
            except ConnectionClosed:
                self.emitter.emit("connection.closed", {"handled": handled})
                return handled
            except TransportError as e:
                self.emitter.emit("transport.error", {"error": str(e)})
                raise

            if not line.strip():
                continue

            self.emitter.command_received(line)
            reply = self.dispatcher.handle(line)
            handled += 1
            if self.trace is not None:
                self.trace.record_reply(line, reply)

            try:
                writer.write_message(reply)
            except TransportError as e:
                self.emitter.emit("transport.error", {"error": str(e)})
                raise
            self.emitter.command_replied(reply)
