"""The single websocket connection that carries a device session."""

import asyncio
import base64
import logging
import ssl
import websockets
from .exceptions import ConnectError, InvalidCredentialsError, NotConnectedError
from .protocol import pack

CREDENTIAL_PREFIX = "auth-"
MAX_FRAME_SIZE = 2**24


def encode_credentials(user, password):
    """Build the token that authenticates the websocket handshake.

    The token is ``auth-`` followed by the url safe base64 encoding of
    ``user:password`` with padding removed.  It is offered to the device as
    the websocket subprotocol.

    Raises:
        InvalidCredentialsError: user or password is empty.
    """

    if not user or not password:
        raise InvalidCredentialsError("missing login or password")

    raw = "{}:{}".format(user, password).encode('utf-8')
    return CREDENTIAL_PREFIX + base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')


class WebSocketTransport:
    """Owns exactly one websocket connection to a device.

    Any number of tasks may send concurrently, writes are serialized so
    frames never interleave.  Only a single task may call receive().

    Args:
        url (str): The ws:// or wss:// URL of the device.
        user (str): The user name to authenticate with.
        password (str): The password to authenticate with.
        insecure (bool): Skip TLS certificate verification on wss:// URLs.
    """

    def __init__(self, url, user, password, insecure=False):
        self.url = url

        self._token = encode_credentials(user, password)
        self._insecure = insecure
        self._con = None
        self._write_lock = None
        self._closing = False
        self._logger = logging.getLogger(__name__)

    @property
    def connected(self):
        """Whether the connection is currently open."""

        return self._con is not None

    @property
    def subprotocol(self):
        """The subprotocol accepted by the device, if it echoed one."""

        if self._con is None:
            return None

        return self._con.subprotocol

    def _ssl_context(self):
        if not self.url.startswith("wss://"):
            return None

        context = ssl.create_default_context()
        if self._insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        return context

    async def connect(self):
        """Open the websocket connection.

        Raises:
            ConnectError: The connection or the handshake failed.
        """

        kwargs = dict(subprotocols=[self._token], max_size=MAX_FRAME_SIZE)

        context = self._ssl_context()
        if context is not None:
            kwargs['ssl'] = context

        try:
            self._con = await websockets.connect(self.url, **kwargs)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as err:
            raise ConnectError("dial: could not connect to device", url=self.url, reason=str(err)) from err

        self._write_lock = asyncio.Lock()
        self._closing = False
        self._logger.info("Connected to %s", self.url)

    async def send(self, message):
        """Encode and write one frame.

        Raises:
            NotConnectedError: The transport is not connected.
            ConnectError: The write failed because the connection dropped.
        """

        con = self._con
        if con is None:
            raise NotConnectedError("not connected")

        frame = pack(message)

        async with self._write_lock:
            self._logger.debug("Sending frame: %s", frame)

            try:
                await con.send(frame)
            except websockets.exceptions.ConnectionClosed as err:
                raise ConnectError("write message: connection closed", reason=str(err)) from err

    async def receive(self):
        """Read the next frame.

        Returns:
            str: The raw frame, or None once the connection has been closed
                cleanly, either by us or by the device.

        Raises:
            ConnectError: The connection failed.
        """

        con = self._con
        if con is None:
            return None

        try:
            frame = await con.recv()
        except websockets.exceptions.ConnectionClosedOK:
            return None
        except websockets.exceptions.ConnectionClosed as err:
            if self._closing:
                return None

            raise ConnectError("runloop: connection to device lost", reason=str(err)) from err

        self._logger.debug("Received frame: %s", frame)
        return frame

    async def close(self):
        """Close the connection.

        Closing a transport that is not connected does nothing.
        """

        con = self._con
        if con is None:
            return

        self._closing = True
        self._con = None

        await con.close()
        self._logger.info("Closed connection to %s", self.url)
