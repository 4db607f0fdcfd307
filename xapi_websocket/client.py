"""A blocking xAPI client for synchronous programs."""

import logging
from .async_client import AsyncXAPIClient
from .async_tools import SharedLoop
from .router import FIRST_MATCH


class XAPIClient:
    """A session with one device, usable from any thread.

    This is a thin wrapper around AsyncXAPIClient that runs every operation
    in a BackgroundEventLoop and blocks the calling thread until it is done.
    Subscription callbacks and dialog callbacks run on worker threads, so
    they may block or call back into this client.

    A typical program connects, starts the receive loop in the background
    and then issues commands::

        client = XAPIClient("wss://device/ws", "admin", "secret")
        client.start()
        client.alert("Hello", "World", 5)
        client.close()

    Alternatively connect() and then run() blocks the calling thread in the
    receive loop until the connection ends.

    Args:
        url (str): The ws:// or wss:// URL of the device.
        user (str): The user name to authenticate with.
        password (str): The password to authenticate with.
        insecure (bool): Skip TLS certificate verification.
        dispatch_policy (str): How notifications that match several
            subscriptions are dispatched, see SubscriptionRegistry.
        loop (BackgroundEventLoop): The background event loop to run in.
    """

    # pylint:disable=too-many-arguments;Every argument is independent connection configuration
    def __init__(self, url, user, password, insecure=False, dispatch_policy=FIRST_MATCH,
                 loop=SharedLoop):
        self._client = AsyncXAPIClient(url, user, password, insecure=insecure,
                                       dispatch_policy=dispatch_policy, loop=loop)
        self._loop = loop
        self._logger = logging.getLogger(__name__)

        self.on_connect = None

    @property
    def connected(self):
        """Whether there is an open connection to the device."""

        return self._client.connected

    @property
    def url(self):
        """The URL of the device."""

        return self._client.url

    def connect(self):
        """Open the connection to the device.

        If an on_connect callback is set, it is called with this client on a
        worker thread once the connection is open.
        """

        self._loop.run_coroutine(self._client.connect())
        self._notify_connected()

    def run(self):
        """Block in the receive loop until the connection ends.

        Raises:
            ConnectError: The connection to the device was lost.
            ProtocolError: The device sent a frame that ends the session.
        """

        self._loop.run_coroutine(self._client.run())

    def connect_and_run(self):
        """Connect and then block in the receive loop."""

        self.connect()
        self.run()

    def start(self):
        """Connect and run the receive loop in the background."""

        self._loop.run_coroutine(self._client.start())
        self._notify_connected()

    def close(self):
        """Close the connection, this may be called multiple times."""

        self._loop.run_coroutine(self._client.stop())

    stop = close

    def _notify_connected(self):
        if self.on_connect is None:
            return

        self._loop.launch_coroutine(self._call_on_connect(self.on_connect))

    async def _call_on_connect(self, callback):
        try:
            await self._loop.run_in_executor(callback, self)
        except Exception:  # pylint:disable=broad-except;Callback errors are only logged
            self._logger.exception("Error in on_connect callback for %s", self.url)

    def invoke(self, method, params=None, timeout=None):
        """Send any command and block until its result arrives."""

        return self._loop.run_coroutine(self._client.invoke(method, params, timeout=timeout))

    def subscribe(self, path, callback, timeout=None):
        """Subscribe to feedback under a path.

        Args:
            path (Path or str): The path to subscribe to.
            callback (callable): Called on a worker thread with the list of
                values found at path in each event.
            timeout (float): Maximum time to wait for the device to accept.

        Returns:
            callable: Call it with no arguments to unsubscribe.  It blocks
                until the device confirms and may be called more than once.
        """

        subscription = self._loop.run_coroutine(self._client.subscribe(path, callback, timeout=timeout))

        def _cancel():
            self._loop.run_coroutine(subscription.cancel())

        return _cancel

    def get(self, path, timeout=None):
        """Read the current value of a status or configuration path."""

        return self._loop.run_coroutine(self._client.get(path, timeout=timeout))

    def mute(self):
        """Mute all microphones."""

        return self._loop.run_coroutine(self._client.mute())

    def unmute(self):
        """Unmute all microphones."""

        return self._loop.run_coroutine(self._client.unmute())

    def alert(self, title, text, duration):
        """Show an alert message for a duration in seconds or a timedelta."""

        return self._loop.run_coroutine(self._client.alert(title, text, duration))

    def alert_clear(self):
        return self._loop.run_coroutine(self._client.alert_clear())

    def text_line(self, text, duration=0):
        """Show a line of text, a duration of 0 keeps it until cleared."""

        return self._loop.run_coroutine(self._client.text_line(text, duration))

    def text_line_clear(self):
        return self._loop.run_coroutine(self._client.text_line_clear())

    def set_widget_value(self, widget_id, value):
        return self._loop.run_coroutine(self._client.set_widget_value(widget_id, value))

    def prompt(self, title, text, options, callback):
        """Show a prompt with up to five options.

        Returns once the prompt is shown.  callback is called exactly once
        on a worker thread as ``callback(canceled, option, error)`` when the
        user chooses an option or dismisses the prompt.
        """

        interaction = self._loop.run_coroutine(self._client.begin_prompt(title, text, options))
        self._loop.launch_coroutine(self._complete(interaction, callback))

    def rating(self, title, text, callback):
        """Show a five star rating dialog.

        callback is called exactly once as ``callback(canceled, stars, error)``.
        """

        interaction = self._loop.run_coroutine(self._client.begin_rating(title, text))
        self._loop.launch_coroutine(self._complete(interaction, callback))

    def text_input(self, text, callback, **kwargs):
        """Show a free form text input dialog.

        Keyword arguments are the optional dialog settings accepted by
        commands.text_input_args().  callback is called exactly once as
        ``callback(canceled, text, error)``.
        """

        interaction = self._loop.run_coroutine(self._client.begin_text_input(text, **kwargs))
        self._loop.launch_coroutine(self._complete(interaction, callback))

    async def _complete(self, interaction, callback):
        result = await interaction.wait()

        try:
            await self._loop.run_in_executor(callback, result.canceled, result.value, result.error)
        except Exception:  # pylint:disable=broad-except;Callback errors are only logged
            self._logger.exception("Error in dialog callback for %s", interaction.feedback_id)
