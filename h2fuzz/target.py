from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Optional

import h2.config
import h2.connection
import h2.events
import h2.exceptions

from . import common
from .config import DEFAULT_PORT

READ_SIZE = 65535


class Target:
    """
    HTTP/2 server ending every request stream immediately.

    The server never reads request bodies nor produces response data, so malformed input
    cannot make it wait for application-level progress. Protocol errors close the affected
    connection only.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT):
        self._host = host
        self._port = port
        self._server: Optional[asyncio.AbstractServer] = None
        self.connections = 0
        self.received = 0

    async def __aenter__(self) -> Target:
        return await self.start()

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.stop()

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self._port
        return int(self._server.sockets[0].getsockname()[1])

    @property
    def listening(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> Target:
        try:
            self._server = await asyncio.start_server(self._handle, self._host, self._port)
        except OSError as e:
            raise common.TargetError(f"Error listening on {self._host}:{self._port}: {e}") from e
        logging.info("Target listening on %s:%d", self._host, self.port)
        return self

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        # Waits for open connections to be closed by their peers
        await self._server.wait_closed()
        self._server = None
        logging.info("Target stopped")

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        conn = h2.connection.H2Connection(config=h2.config.H2Configuration(client_side=False))
        conn.initiate_connection()

        try:
            writer.write(conn.data_to_send())
            while True:
                data = await reader.read(READ_SIZE)
                if not data:
                    break
                self.received += len(data)
                try:
                    events = conn.receive_data(data)
                except h2.exceptions.ProtocolError as e:
                    logging.debug("Protocol error, closing connection: %s", e)
                    writer.write(conn.data_to_send())
                    break
                except Exception as e:  # noqa: BLE001
                    # Header decoding errors of h2 are no ProtocolError
                    logging.debug("Invalid input, closing connection: %s", e)
                    break
                if not self._process(conn, events):
                    writer.write(conn.data_to_send())
                    break
                writer.write(conn.data_to_send())
                await writer.drain()
        except OSError as e:
            logging.debug("Connection error: %s", e)
        finally:
            writer.close()

    def _process(self, conn: h2.connection.H2Connection, events: list[h2.events.Event]) -> bool:
        """Handle events, return False if the connection was terminated."""
        for event in events:
            if isinstance(event, h2.events.RequestReceived):
                try:
                    conn.send_headers(event.stream_id, [(":status", "200")], end_stream=True)
                except h2.exceptions.ProtocolError as e:
                    logging.debug("Cannot end stream %d: %s", event.stream_id, e)
            elif isinstance(event, h2.events.DataReceived):
                conn.acknowledge_received_data(event.flow_controlled_length, event.stream_id)
            elif isinstance(event, h2.events.ConnectionTerminated):
                return False
        return True
