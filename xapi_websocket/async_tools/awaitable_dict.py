"""A dictionary of futures keyed by correlation id."""

import asyncio
import threading


class AwaitableDict:
    """An async key/value store where readers wait for a value to be set.

    A key is declared before the value can arrive, then one task awaits
    get() while another task or callback calls set().  This is the pending
    request table of a session: the key is the sequence id of a command
    and the value is its reply.

    get() always removes the key when it returns, whether a value arrived,
    an exception was set, or the wait timed out or was cancelled, so
    abandoned waits do not leak entries.  A value set for a key that was
    already removed raises KeyError.

    Args:
        loop (BackgroundEventLoop): The loop that futures are created in.
    """

    def __init__(self, loop):
        self._data = {}
        self._loop = loop
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._data)

    def __contains__(self, name):
        with self._lock:
            return name in self._data

    def declare(self, name):
        """Declare that a key will be set in the future.

        Raises:
            KeyError: The key is already declared.
        """

        future = self._loop.create_future()

        with self._lock:
            if name in self._data:
                raise KeyError("Declared name {} that already existed".format(name))

            self._data[name] = future

    async def get(self, name, timeout=None):
        """Wait for the value of a declared key.

        Args:
            name (object): The key to wait on.
            timeout (float): The maximum time to wait in seconds, None to
                wait forever.

        Returns:
            object: The value passed to set().

        Raises:
            KeyError: The key was never declared.
            asyncio.TimeoutError: No value arrived within timeout.
            Exception: Whatever was passed to set_exception().
        """

        with self._lock:
            future = self._data[name]

        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            with self._lock:
                self._data.pop(name, None)

            future.cancel()

    def set(self, name, value):
        """Set the value of a declared key, waking its waiter.

        Raises:
            KeyError: The key is not declared or was already removed.
        """

        self._resolve(name).set_result(value)

    def set_exception(self, name, exc):
        """Make the waiter of a declared key raise an exception.

        Raises:
            KeyError: The key is not declared or was already removed.
        """

        self._resolve(name).set_exception(exc)

    def remove(self, name):
        """Remove a declared key that will never be awaited."""

        with self._lock:
            future = self._data.pop(name, None)

        if future is not None:
            future.cancel()

    def fail_all(self, exc):
        """Fail every waiting key with the same exception.

        Returns:
            int: The number of waiters that were failed.
        """

        with self._lock:
            futures = list(self._data.values())

        failed = 0
        for future in futures:
            if not future.done():
                future.set_exception(exc)
                failed += 1

        return failed

    def _resolve(self, name):
        with self._lock:
            future = self._data.get(name)

        if future is None or future.done():
            raise KeyError("Key {} has no pending waiter".format(name))

        return future
