"""Tor control port client for requesting a new circuit (NEWNYM)."""

import asyncio

from torfetch.errors import AuthenticationFailed, ControlProtocolError, RotationFailed
from torfetch.models.config import split_address

READ_BUFFER_SIZE = 512
STATUS_OK = "250"


class CircuitController:
    """
    Requests a fresh Tor identity over the line-oriented control protocol.

    The conversation is two request/response round trips on a direct TCP
    connection:

        AUTHENTICATE "<password>"  ->  250 OK
        SIGNAL NEWNYM              ->  250 OK

    An empty control address disables the controller. The controller never
    waits for the new circuit to settle; that is the caller's job.
    """

    def __init__(self, control_address: str = "", password: str = "", timeout: float = 10.0):
        """
        Initialize controller.

        Args:
            control_address: Control port as host:port, empty to disable rotation
            password: Control port password, empty for no-auth setups
            timeout: Deadline in seconds for connecting and for each read
        """
        self.control_address = control_address.strip()
        self.password = password
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.control_address)

    async def request_rotation(self) -> bool:
        """
        Ask Tor for a new identity.

        Returns:
            True if Tor acknowledged NEWNYM, False if rotation is disabled

        Raises:
            AuthenticationFailed: If AUTHENTICATE is not answered with 250
            RotationFailed: If SIGNAL NEWNYM is not answered with 250
            ControlProtocolError: On connection errors, timeouts or EOF
        """
        if not self.enabled:
            return False

        try:
            host, port = split_address(self.control_address)
        except ValueError as e:
            raise ControlProtocolError(str(e)) from e

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=self.timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ControlProtocolError(f"could not connect to control port: {e!r}") from e

        try:
            reply = await self._round_trip(reader, writer, f'AUTHENTICATE "{self._quoted_password()}"')
            if STATUS_OK not in reply:
                raise AuthenticationFailed(f"authentication failed: {reply.strip()}")

            reply = await self._round_trip(reader, writer, "SIGNAL NEWNYM")
            if STATUS_OK not in reply:
                raise RotationFailed(f"NEWNYM failed: {reply.strip()}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        return True

    async def _round_trip(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        command: str,
    ) -> str:
        """Send one CRLF-terminated command and read a single bounded reply."""
        try:
            writer.write(f"{command}\r\n".encode("utf-8"))
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)
            data = await asyncio.wait_for(reader.read(READ_BUFFER_SIZE), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise ControlProtocolError(f"could not read control reply: {e!r}") from e

        if not data:
            raise ControlProtocolError("control port closed the connection")
        return data.decode("ascii", errors="replace")

    def _quoted_password(self) -> str:
        return self.password.replace("\\", "\\\\").replace('"', '\\"')

    @classmethod
    def from_config(cls, config) -> "CircuitController":
        return cls(
            control_address=config.control_address,
            password=config.control_password,
            timeout=config.control_timeout,
        )

