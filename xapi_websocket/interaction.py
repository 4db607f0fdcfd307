"""Send a command and wait for exactly one of several terminal events.

Dialogs shown on the device (prompts, ratings, text inputs) report the user's
answer later as feedback events.  Each dialog can end in one of a few ways,
for example answered or dismissed, and each way is a different event path.
An Interaction subscribes to all of them, sends the command that shows the
dialog and then completes once, on whichever event arrives first.  Every
subscription is cancelled before the result is reported, and no error raised
during setup or teardown is dropped.
"""

import asyncio
import itertools
import logging
from collections import namedtuple
from .commands import FEEDBACK_ID_FIELD
from .exceptions import InvalidMessageError, TimeoutExpiredError, XAPIError, combine_errors

InteractionResult = namedtuple('InteractionResult', ['path', 'value', 'canceled', 'error'])

_feedback_ids = itertools.count(1)


def new_feedback_id(kind):
    """Generate a process unique FeedbackId for a dialog."""

    return "xapi-{}-{}".format(kind, next(_feedback_ids))


async def cancel_all(subscriptions):
    """Cancel every subscription, continuing past failures.

    Returns:
        Exception: None if everything was cancelled, otherwise the
            combined error of every failed cancellation.
    """

    errors = []
    for subscription in subscriptions:
        try:
            await subscription.cancel()
        except XAPIError as err:
            errors.append(err)

    return combine_errors(*errors)


class Interaction:
    """A command whose outcome is the first of several events.

    Args:
        client (AsyncXAPIClient): The client used to subscribe and invoke.
        outcomes (list of (Path, callable)): The terminal event paths.  Each
            parser is called with the values found at its path and returns
            a ``(canceled, value)`` tuple.
        feedback_id (str): If given, events that carry a different
            FeedbackId are not routed to this interaction since they belong
            to another dialog.  Several dialogs can then wait on the same
            event paths at once.

    Notifications go to subscriptions according to the client's dispatch
    policy.  With FIRST_MATCH, a broader subscription registered earlier,
    for example on ``Event``, receives the dialog's events instead and the
    interaction only ends by timeout.  Use FAN_OUT or LONGEST_PATH when
    dialogs share a session with such subscriptions.
    """

    def __init__(self, client, outcomes, feedback_id=None):
        self.feedback_id = feedback_id

        self._client = client
        self._outcomes = list(outcomes)
        self._subscriptions = []
        self._done = None
        self._claimed = False
        self._logger = logging.getLogger(__name__)

    @property
    def done(self):
        """Whether the interaction has produced its result."""

        return self._done is not None and self._done.done()

    async def start(self, method, params):
        """Subscribe to every outcome and then send the command.

        If anything fails, the subscriptions made so far are cancelled and
        the original error is raised, combined with any cleanup errors.
        """

        self._done = asyncio.get_running_loop().create_future()

        try:
            for path, parse in self._outcomes:
                subscription = await self._client.subscribe(path, self._make_callback(path, parse),
                                                           accepts=self._is_ours)
                self._subscriptions.append(subscription)

            await self._client.invoke(method, params)
        except XAPIError as err:
            self._claimed = True
            cleanup = await cancel_all(self._subscriptions)
            self._finish(InteractionResult(None, None, True, combine_errors(err, cleanup)))
            if cleanup is None:
                raise

            raise combine_errors(err, cleanup) from err

    async def wait(self, timeout=None):
        """Wait for the interaction to complete.

        Args:
            timeout (float): Maximum time to wait in seconds, None waits
                until an event arrives.

        Returns:
            InteractionResult: The matched path, the parsed value, whether
                the dialog was canceled and any error from parsing or
                teardown.

        Raises:
            TimeoutExpiredError: No terminal event arrived in time.  The
                subscriptions are cancelled before this is raised.  An event
                that arrived in time still wins even if its teardown has
                not finished when the timeout expires.
        """

        try:
            return await asyncio.wait_for(asyncio.shield(self._done), timeout)
        except asyncio.TimeoutError as err:
            if self._claimed:
                # An event or abort already won and is finishing its teardown
                return await self._done

            self._claimed = True
            cleanup = await cancel_all(self._subscriptions)
            timeout_err = TimeoutExpiredError("Timeout waiting for user interaction",
                                              feedback_id=self.feedback_id, timeout=timeout)
            self._finish(InteractionResult(None, None, True, timeout_err))
            raise combine_errors(timeout_err, cleanup) from err

    def abort(self, error):
        """Complete a pending interaction with an error, without teardown.

        Used when the session ends and the subscriptions are already gone.
        """

        if self.done or self._done is None:
            return

        self._claimed = True
        self._finish(InteractionResult(None, None, True, error))

    def _finish(self, result):
        if not self._done.done():
            self._done.set_result(result)

    def _is_ours(self, values):
        if self.feedback_id is None:
            return True

        first = values[0]
        if isinstance(first, dict) and FEEDBACK_ID_FIELD in first:
            return first[FEEDBACK_ID_FIELD] == self.feedback_id

        return True

    def _make_callback(self, path, parse):
        async def _on_event(values):
            if self._claimed:
                return

            # Claim before awaiting teardown so concurrent events are ignored
            self._claimed = True

            canceled, value, error = True, None, None
            try:
                canceled, value = parse(values)
            except (LookupError, TypeError, ValueError) as err:
                error = InvalidMessageError("Malformed interaction event", path=str(path),
                                            values=values, reason=str(err))

            self._logger.debug("Interaction %s finished by event on %s", self.feedback_id, path)
            cleanup = await cancel_all(self._subscriptions)
            self._finish(InteractionResult(path, value, canceled, combine_errors(error, cleanup)))

        return _on_event
