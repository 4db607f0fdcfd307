"""Route device notifications to the subscriptions that asked for them."""

import logging
import threading
from .exceptions import ArgumentError, MissingCallbackError, MissingDataError
from .paths import Path

FIRST_MATCH = 'first_match'
LONGEST_PATH = 'longest_path'
FAN_OUT = 'fan_out'

POLICIES = frozenset([FIRST_MATCH, LONGEST_PATH, FAN_OUT])


class Subscription:
    """A registered path and the callback for notifications under it.

    Subscriptions are created by the client's subscribe() method and are
    cancelled with cancel(), which removes them from the registry and tells
    the device to stop sending feedback for the path.  Cancelling twice is
    harmless.

    Args:
        path (Path): The subscribed path.
        callback (callable): Called with the list of values found at path.
        canceller (callable): Coroutine function called with this
            subscription to tear it down.
        accepts (callable): Optional filter called with the values found at
            path.  If it returns False the notification is not meant for
            this subscription and it does not count as a match.
    """

    def __init__(self, path, callback, canceller=None, accepts=None):
        self.path = path
        self.callback = callback
        self._canceller = canceller
        self._accepts = accepts

    def accepts(self, values):
        """Check whether the values found at path are meant for this subscription."""

        if self._accepts is None:
            return True

        return bool(self._accepts(values))

    async def cancel(self):
        """Unregister this subscription and unsubscribe on the device."""

        if self._canceller is None:
            return

        await self._canceller(self)

    def __repr__(self):
        return "Subscription(%r)" % str(self.path)


class SubscriptionRegistry:
    """The set of active subscriptions of a session.

    When a notification arrives, each subscription's path is looked up in the
    payload.  A subscription with an accepts filter only matches if the filter
    takes the values found there.  Which of several matching subscriptions receive the data is
    decided by the dispatch policy:

    - FIRST_MATCH: the earliest registered matching subscription, any others
      are skipped.
    - LONGEST_PATH: the matching subscription with the most path segments,
      ties go to the earliest registered.
    - FAN_OUT: every matching subscription.

    Args:
        policy (str): One of FIRST_MATCH, LONGEST_PATH or FAN_OUT.
    """

    def __init__(self, policy=FIRST_MATCH):
        if policy not in POLICIES:
            raise ArgumentError("Unknown dispatch policy", policy=policy, known=sorted(POLICIES))

        self.policy = policy

        self._subscriptions = []
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def __len__(self):
        with self._lock:
            return len(self._subscriptions)

    def __contains__(self, subscription):
        with self._lock:
            return any(x is subscription for x in self._subscriptions)

    def subscriptions(self):
        """Return a snapshot list of active subscriptions in registration order."""

        with self._lock:
            return list(self._subscriptions)

    def add(self, subscription):
        """Register a subscription."""

        if not isinstance(subscription.path, Path):
            raise ArgumentError("Subscription path must be a Path", path=subscription.path)

        with self._lock:
            self._subscriptions.append(subscription)

    def remove(self, subscription):
        """Unregister a subscription.

        Returns:
            bool: False if the subscription was not registered.
        """

        with self._lock:
            for i, current in enumerate(self._subscriptions):
                if current is subscription:
                    del self._subscriptions[i]
                    return True

        return False

    def clear(self):
        """Forget every subscription, used when the session ends.

        Returns:
            int: The number of subscriptions that were removed.
        """

        with self._lock:
            count = len(self._subscriptions)
            self._subscriptions = []

        return count

    def match(self, payload):
        """Find the subscriptions that should receive a notification.

        Args:
            payload (object): The decoded notification payload.

        Returns:
            list of (Subscription, list): The chosen subscriptions with the
                values found at their path, in dispatch order.

        Raises:
            MissingDataError: No subscription matched the payload.
            MissingCallbackError: A chosen subscription has no callback.
        """

        candidates = self.subscriptions()
        if self.policy == LONGEST_PATH:
            candidates.sort(key=lambda x: len(x.path), reverse=True)

        matched = []
        for subscription in candidates:
            values = subscription.path.find(payload)
            if len(values) == 0 or not subscription.accepts(values):
                continue

            matched.append((subscription, values))
            if self.policy != FAN_OUT:
                break

        if len(matched) == 0:
            raise MissingDataError("missing response data", subscriptions=len(candidates))

        for subscription, _values in matched:
            if subscription.callback is None:
                raise MissingCallbackError("missing callback", path=str(subscription.path))

        return matched
