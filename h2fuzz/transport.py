from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import common


class Session:
    """Single-use TCP connection carrying exactly one payload."""

    def __init__(self, host: str, port: int, writer: asyncio.StreamWriter):
        self._host = host
        self._port = port
        self._writer: Optional[asyncio.StreamWriter] = writer

    @classmethod
    async def open(cls, host: str, port: int, timeout: Optional[float] = None) -> Session:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
        except asyncio.TimeoutError as e:
            raise common.RequestTimeoutError(
                f"Connection to {host}:{port} not established within {timeout} seconds",
            ) from e
        except OSError as e:
            raise common.ConnectError(f"Error connecting to {host}:{port}: {e}") from e
        return cls(host, port, writer)

    async def send(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        """Write buffer, signal end of input and close the session. No response is read."""

        if self._writer is None:
            raise common.SendError(f"Session to {self._host}:{self._port} already used")
        writer, self._writer = self._writer, None

        try:
            writer.write(buffer)
            await asyncio.wait_for(writer.drain(), timeout)
            if writer.can_write_eof():
                writer.write_eof()
        except asyncio.TimeoutError as e:
            raise common.RequestTimeoutError(
                f"Sending {len(buffer)} bytes to {self._host}:{self._port} took more than "
                f"{timeout} seconds",
            ) from e
        except OSError as e:
            raise common.SendError(f"Error sending to {self._host}:{self._port}: {e}") from e
        finally:
            writer.close()

        try:
            await writer.wait_closed()
        except OSError as e:
            # Target reset the connection after receiving the payload
            logging.debug("Connection to %s:%d closed with error: %s", self._host, self._port, e)


async def send(host: str, port: int, buffer: bytes, timeout: Optional[float] = None) -> None:
    """
    Deliver buffer over a new TCP connection and half-close it.

    Connection failures raise ConnectError, write failures SendError and exceeding timeout
    (seconds, applied to connect and to write separately) RequestTimeoutError.
    """
    session = await Session.open(host, port, timeout)
    await session.send(buffer, timeout)
