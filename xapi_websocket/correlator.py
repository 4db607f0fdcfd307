"""Correlate outgoing commands with the replies that answer them."""

import asyncio
import itertools
import logging
import threading
from .async_tools import AwaitableDict, SharedLoop
from .exceptions import MissingChannelError, MissingIdFieldError, RemoteError, \
    TimeoutExpiredError, UnknownResponseError
from .protocol import build_request


class RequestCorrelator:
    """Assign sequence ids to commands and wait for their replies.

    Every command gets the next id from a counter protected by its own lock,
    a result slot is declared in the pending table under that id and then
    the frame is sent.  The receive loop calls deliver() or deliver_error()
    when a reply arrives, which wakes exactly the caller that sent the
    matching id, regardless of the order in which commands were sent.

    Args:
        send (callable): A coroutine function that writes one message dict.
        loop (BackgroundEventLoop): The loop that result slots live in.
    """

    def __init__(self, send, loop=SharedLoop):
        self._send = send
        self._counter = itertools.count(1)
        self._seq_lock = threading.Lock()
        self._pending = AwaitableDict(loop)
        self._logger = logging.getLogger(__name__)

    def __len__(self):
        return len(self._pending)

    def next_id(self):
        """Reserve the next sequence id.

        Ids are unique and strictly increasing for the lifetime of this
        correlator.
        """

        with self._seq_lock:
            return next(self._counter)

    async def invoke(self, method, params=None, timeout=None):
        """Send a command and wait for its reply.

        Args:
            method (str): The remote method name.
            params (object): Structured arguments for the method.
            timeout (float): Maximum time to wait for the reply in seconds.
                None waits forever.

        Returns:
            dict or number: The result returned by the device.

        Raises:
            RemoteError: The device answered with an error.
            UnknownResponseError: The result is neither an object nor a
                number.
            TimeoutExpiredError: No reply arrived within timeout.
        """

        msg_id = self.next_id()

        # The slot must exist before the frame is sent or a fast reply could be lost
        self._pending.declare(msg_id)

        try:
            await self._send(build_request(msg_id, method, params))
        except BaseException:
            self._pending.remove(msg_id)
            raise

        try:
            result = await self._pending.get(msg_id, timeout=timeout)
        except asyncio.TimeoutError as err:
            raise TimeoutExpiredError("Timeout waiting for reply", method=method, id=msg_id,
                                      timeout=timeout) from err

        return _check_result(method, result)

    def deliver(self, msg_id, result):
        """Resolve the caller waiting on msg_id with a result.

        Raises:
            MissingIdFieldError: msg_id is missing or not a number.
            MissingChannelError: Nobody is waiting on msg_id.
        """

        key = _correlation_key(msg_id)

        try:
            self._pending.set(key, result)
        except KeyError as err:
            raise MissingChannelError("missing response channel for request", id=msg_id) from err

    def deliver_error(self, msg_id, error):
        """Fail the caller waiting on msg_id with an exception.

        Raises:
            MissingIdFieldError: msg_id is missing or not a number.
            MissingChannelError: Nobody is waiting on msg_id.
        """

        key = _correlation_key(msg_id)

        try:
            self._pending.set_exception(key, error)
        except KeyError as err:
            raise MissingChannelError("missing response channel for request", id=msg_id,
                                      error=str(error)) from err

    def handle_reply(self, message):
        """Deliver a decoded success or error reply to its waiter."""

        if 'error' in message:
            error = message['error']
            self.deliver_error(message.get('id'), RemoteError(error.get('code'), error.get('message'),
                                                              error.get('data')))
        else:
            self.deliver(message.get('id'), message.get('result'))

    def fail_all(self, error):
        """Fail every pending command, used when the connection ends."""

        failed = self._pending.fail_all(error)
        if failed > 0:
            self._logger.info("Failed %d pending commands: %s", failed, error)


def _correlation_key(msg_id):
    if isinstance(msg_id, bool) or not isinstance(msg_id, (int, float)):
        raise MissingIdFieldError("missing id field in response", id=msg_id)

    if isinstance(msg_id, float):
        if not msg_id.is_integer():
            raise MissingIdFieldError("missing id field in response", id=msg_id)

        msg_id = int(msg_id)

    return msg_id


def _check_result(method, result):
    if isinstance(result, dict):
        return result

    if isinstance(result, (int, float)) and not isinstance(result, bool):
        return result

    raise UnknownResponseError("unknown response", method=method, result=result)

