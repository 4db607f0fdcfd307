"""An asyncio client for the xAPI of a video device over a websocket."""

import functools
import inspect
import logging
from . import commands
from . import paths
from .async_tools import SharedLoop
from .correlator import RequestCorrelator
from .exceptions import ArgumentError, InternalError, InvalidMessageError, NotConnectedError, \
    MissingChannelError, RoutingError, UnsupportedMessageError
from .interaction import Interaction, new_feedback_id
from .paths import Path
from .protocol import MESSAGES, unpack
from .router import FIRST_MATCH, Subscription, SubscriptionRegistry
from .transport import WebSocketTransport


class AsyncXAPIClient:
    """A session with one device, used from coroutines in a background loop.

    The client owns a single websocket connection.  Commands sent with
    invoke() are tagged with a sequence id and their callers wait until the
    reply with the same id comes back, so any number of commands may be in
    flight at once and complete in any order.  Notifications pushed by the
    device are routed to subscriptions by looking up the subscribed path in
    the notification payload.

    A single receive loop, run(), reads every frame from the connection.
    It is normally started in the background with start().  Errors that
    concern a single frame, such as a reply for an id that nobody waits on
    or a notification that no subscription wants, are logged and the loop
    keeps going.  Transport failures and frames that break the protocol
    end the loop and are raised from run().  When the loop ends, all
    pending commands fail with NotConnectedError and all subscriptions are
    forgotten.

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
        self.url = url
        self.loop = loop

        self._user = user
        self._password = password
        self._insecure = insecure
        self._transport = None
        self._connection_task = None
        self._running = False
        self._correlator = RequestCorrelator(self._send, loop=loop)
        self._registry = SubscriptionRegistry(dispatch_policy)
        self._interactions = set()
        self._callback_tasks = set()
        self._logger = logging.getLogger(__name__)

        logger = logging.getLogger('websockets')
        logger.setLevel(logging.ERROR)
        logger.addHandler(logging.NullHandler())

    @property
    def connected(self):
        """Whether there is an open connection to the device."""

        return self._transport is not None and self._transport.connected

    @property
    def running(self):
        """Whether the receive loop is currently running."""

        return self._running

    @property
    def subscriptions(self):
        """A snapshot list of the active subscriptions."""

        return self._registry.subscriptions()

    @property
    def pending_count(self):
        """The number of commands waiting for a reply."""

        return len(self._correlator)

    async def connect(self):
        """Open the connection to the device.

        Raises:
            InvalidCredentialsError: The user or password is empty.
            ConnectError: The device could not be reached or refused the
                handshake.
            InternalError: The client is already connected.
        """

        if self._transport is not None:
            raise InternalError("Client is already connected", url=self.url)

        transport = WebSocketTransport(self.url, self._user, self._password, insecure=self._insecure)
        await transport.connect()
        self._transport = transport

    async def start(self, name="xapi_client"):
        """Connect and run the receive loop in a background task.

        Args:
            name (str): Optional name of the background task for logging.
        """

        await self.connect()
        self._connection_task = self.loop.add_task(self._run_logged(), name=name)

    async def stop(self):
        """Close the connection and stop the receive loop.

        This method is idempotent and may be called multiple times.
        """

        transport = self._transport
        task = self._connection_task
        self._connection_task = None

        if transport is not None:
            await transport.close()

        if task is not None:
            await task.stop()

        if self._transport is transport:
            self._transport = None

        self._disconnected(NotConnectedError("Client was closed", url=self.url))

    close = stop

    async def run(self):
        """Read and process frames until the connection ends.

        Returns normally if the connection is closed cleanly, by stop() or
        by the device.

        Raises:
            NotConnectedError: connect() has not been called.
            InternalError: The receive loop is already running.
            ConnectError: The connection to the device was lost.
            ProtocolError: The device sent a frame that ends the session.
        """

        transport = self._transport
        if transport is None:
            raise NotConnectedError("not connected", url=self.url)

        if self._running:
            raise InternalError("The receive loop is already running", url=self.url)

        self._running = True

        try:
            while True:
                frame = await transport.receive()
                if frame is None:
                    self._logger.info("Connection to %s closed", self.url)
                    return

                try:
                    self.process_frame(frame)
                except (MissingChannelError, RoutingError) as err:
                    self._logger.warning("Dropping frame from device: %s", err)
        finally:
            self._running = False
            await transport.close()

            if self._transport is transport:
                self._transport = None

            self._disconnected(NotConnectedError("Connection to device closed", url=self.url))

    async def _run_logged(self):
        try:
            await self.run()
        except Exception:  # pylint:disable=broad-except;This is a background worker
            self._logger.exception("Receive loop for %s terminated", self.url)

    def _disconnected(self, error):
        self._correlator.fail_all(error)

        dropped = self._registry.clear()
        if dropped > 0:
            self._logger.debug("Dropped %d subscriptions on disconnect", dropped)

        interactions = list(self._interactions)
        self._interactions.clear()
        for interaction in interactions:
            interaction.abort(error)

    async def _send(self, message):
        transport = self._transport
        if transport is None:
            raise NotConnectedError("not connected", url=self.url)

        await transport.send(message)

    def process_frame(self, frame):
        """Handle one frame received from the device.

        Replies are delivered to the command that is waiting for them and
        notifications are dispatched to subscription callbacks.  Callbacks
        run in their own task and never block this method.

        Args:
            frame (str): The raw text frame.

        Raises:
            InvalidMessageError: The frame is not a JSON object.
            UnsupportedMessageError: The device sent a request.
            MissingIdFieldError: A reply has no usable id.
            MissingChannelError: Nobody is waiting for a reply.
            MissingDataError: No subscription wants a notification.
            MissingCallbackError: A matched subscription has no callback.
        """

        message = unpack(frame)
        kind = MESSAGES.classify(message)

        if kind == MESSAGES.REQUEST:
            raise UnsupportedMessageError("unsupported jsonrpc2 message", method=message.get('method'),
                                          id=message.get('id'))

        if kind in (MESSAGES.SUCCESS, MESSAGES.ERROR):
            self._correlator.handle_reply(message)
        elif kind == MESSAGES.NOTIFICATION:
            self._dispatch(message.get('params'))
        else:
            self._correlator.deliver_error(message.get('id'),
                                           InvalidMessageError("invalid jsonrpc2 message", frame=message))

    def _dispatch(self, payload):
        for subscription, values in self._registry.match(payload):
            task = self.loop.launch_coroutine(self._call_subscriber(subscription, values))
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_tasks.discard)

    async def _call_subscriber(self, subscription, values):
        callback = subscription.callback

        try:
            if inspect.iscoroutinefunction(callback):
                await callback(values)
            else:
                await self.loop.run_in_executor(callback, values)
        except Exception:  # pylint:disable=broad-except;Callback errors must not reach the receive loop
            self._logger.exception("Error calling callback for %s, values=%s", subscription.path, values)

    async def invoke(self, method, params=None, timeout=None):
        """Send a command and wait for its result.

        Args:
            method (str): The device method, for example
                ``xCommand/Audio/Microphones/Mute``.
            params (object): Structured arguments of the method.
            timeout (float): Maximum time to wait for the reply in seconds,
                None waits until it arrives or the connection ends.

        Returns:
            dict or number: The result sent by the device.

        Raises:
            NotConnectedError: There is no connection or it closed before
                the reply arrived.
            RemoteError: The device answered with an error.
            TimeoutExpiredError: No reply arrived within timeout.
        """

        if self._transport is None:
            raise NotConnectedError("not connected", url=self.url)

        return await self._correlator.invoke(method, params, timeout=timeout)

    async def subscribe(self, path, callback, timeout=None, accepts=None):
        """Ask the device for feedback under a path.

        The subscription is only registered once the device accepted it.
        The callback receives the list of values found at path in each
        matching notification.  Coroutine functions are run as tasks in the
        loop, any other callable runs on a worker thread.

        Args:
            path (Path or str): The path to subscribe to.
            callback (callable): Called with the values for each event.
            timeout (float): Maximum time to wait for the device to accept.
            accepts (callable): Optional filter on the values of an event,
                events it rejects are routed as if this subscription did
                not exist.

        Returns:
            Subscription: The registered subscription, call its cancel()
                coroutine to unsubscribe.
        """

        path = Path(path)
        if not callable(callback):
            raise ArgumentError("Subscription callback must be callable", path=str(path))

        await self.invoke(commands.FEEDBACK_SUBSCRIBE, path.to_subscribe_query(), timeout=timeout)

        subscription = Subscription(path, callback, self._unsubscribe, accepts=accepts)
        self._registry.add(subscription)
        self._logger.debug("Subscribed to %s", path)
        return subscription

    async def _unsubscribe(self, subscription):
        if not self._registry.remove(subscription):
            return

        self._logger.debug("Unsubscribing from %s", subscription.path)
        await self.invoke(commands.FEEDBACK_UNSUBSCRIBE, subscription.path.to_subscribe_query())

    async def get(self, path, timeout=None):
        """Read the current value of a status or configuration path."""

        return await self.invoke(commands.GET, Path(path).to_get_params(), timeout=timeout)

    async def mute(self):
        """Mute all microphones."""

        return await self.invoke(commands.MICROPHONES_MUTE)

    async def unmute(self):
        """Unmute all microphones."""

        return await self.invoke(commands.MICROPHONES_UNMUTE)

    async def alert(self, title, text, duration):
        """Show an alert message for a duration in seconds or a timedelta."""

        return await self.invoke(commands.ALERT_DISPLAY, commands.alert_args(title, text, duration))

    async def alert_clear(self):
        """Remove the alert currently shown."""

        return await self.invoke(commands.ALERT_CLEAR)

    async def text_line(self, text, duration=0):
        """Show a line of text, a duration of 0 keeps it until cleared."""

        return await self.invoke(commands.TEXT_LINE_DISPLAY, commands.text_line_args(text, duration))

    async def text_line_clear(self):
        """Remove the text line currently shown."""

        return await self.invoke(commands.TEXT_LINE_CLEAR)

    async def set_widget_value(self, widget_id, value):
        """Update the value shown by a UI extension widget."""

        return await self.invoke(commands.WIDGET_SET_VALUE, commands.widget_value_args(widget_id, value))

    async def begin_prompt(self, title, text, options):
        """Show a prompt and return the started Interaction.

        The interaction's value is the text of the chosen option.  It is
        canceled if the prompt is dismissed without a choice.
        """

        options = list(options)
        feedback_id = new_feedback_id('prompt')
        args = commands.prompt_args(title, text, options, feedback_id)

        outcomes = [(paths.EVENT_USER_INTERFACE_PROMPT_RESPONSE, functools.partial(_chosen_option, options)),
                    (paths.EVENT_USER_INTERFACE_PROMPT_CLEARED, _dismissed)]

        return await self._begin(Interaction(self, outcomes, feedback_id), commands.PROMPT_DISPLAY, args)

    async def begin_rating(self, title, text):
        """Show a five star rating dialog and return the started Interaction.

        The interaction's value is the number of stars chosen.
        """

        feedback_id = new_feedback_id('rating')
        args = commands.rating_args(title, text, feedback_id)

        outcomes = [(paths.EVENT_USER_INTERFACE_RATING_RESPONSE, _rating),
                    (paths.EVENT_USER_INTERFACE_MESSAGE_RATING_CLEARED, _dismissed)]

        return await self._begin(Interaction(self, outcomes, feedback_id), commands.RATING_DISPLAY, args)

    async def begin_text_input(self, text, **kwargs):
        """Show a text input dialog and return the started Interaction.

        Keyword arguments are passed to commands.text_input_args().  The
        interaction's value is the submitted text.
        """

        feedback_id = new_feedback_id('text-input')
        args = commands.text_input_args(text, feedback_id, **kwargs)

        outcomes = [(paths.EVENT_USER_INTERFACE_TEXT_INPUT_RESPONSE, _submitted_text),
                    (paths.EVENT_USER_INTERFACE_TEXT_INPUT_CLEAR, _dismissed)]

        return await self._begin(Interaction(self, outcomes, feedback_id), commands.TEXT_INPUT_DISPLAY, args)

    async def _begin(self, interaction, method, args):
        await interaction.start(method, args)

        self._interactions = set(x for x in self._interactions if not x.done)
        self._interactions.add(interaction)
        return interaction

    async def prompt(self, title, text, options, timeout=None):
        """Show a prompt and wait for the chosen option.

        Returns:
            str: The chosen option, None if the prompt was dismissed.
        """

        interaction = await self.begin_prompt(title, text, options)
        return _unwrap(await interaction.wait(timeout))

    async def rating(self, title, text, timeout=None):
        """Show a rating dialog and wait for the number of stars.

        Returns:
            int: The rating, None if the dialog was dismissed.
        """

        interaction = await self.begin_rating(title, text)
        return _unwrap(await interaction.wait(timeout))

    async def text_input(self, text, timeout=None, **kwargs):
        """Show a text input dialog and wait for the submitted text.

        Returns:
            str: The submitted text, None if the dialog was dismissed.
        """

        interaction = await self.begin_text_input(text, **kwargs)
        return _unwrap(await interaction.wait(timeout))


def _unwrap(result):
    if result.error is not None:
        raise result.error

    if result.canceled:
        return None

    return result.value


def _chosen_option(options, values):
    option_id = int(values[0]['OptionId'])
    if option_id < 1 or option_id > len(options):
        raise ValueError("Option %d out of range" % option_id)

    return False, options[option_id - 1]


def _rating(values):
    return False, int(values[0]['Rating'])


def _submitted_text(values):
    return False, values[0][commands.TEXT_FIELD]


def _dismissed(_values):
    return True, None
