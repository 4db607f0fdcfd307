"""Exceptions raised by the xAPI websocket client.

All exceptions carry a short message plus arbitrary keyword parameters that
describe what went wrong.  They all derive from :class:`XAPIError` so callers
can catch every library failure with a single except clause.
"""

from typedargs.exceptions import KeyValueException
from typedargs.exceptions import ArgumentError, ValidationError, InternalError


class XAPIError(KeyValueException):
    """Base class for every error raised by this package."""

    pass


class LoopStoppingError(XAPIError):
    """A task was scheduled on a BackgroundEventLoop that is shutting down."""

    pass


class TimeoutExpiredError(XAPIError):
    """An operation did not finish within the timeout given by the caller."""

    pass


class ConnectError(XAPIError):
    """The websocket connection could not be established or was lost."""

    pass


class InvalidCredentialsError(XAPIError, ArgumentError):
    """Either the user name or the password was empty."""

    pass


class NotConnectedError(XAPIError):
    """An operation needed a device connection but none was available."""

    pass


class ProtocolError(XAPIError):
    """The device sent a frame that could not be handled.

    Subclasses describe the specific problem.  Some protocol errors are
    fatal to the receive loop, others only affect a single frame.
    """

    pass


class MissingIdFieldError(ProtocolError):
    """A reply frame did not carry an id that could be correlated."""

    pass


class MissingChannelError(ProtocolError):
    """A reply frame arrived for an id that nobody is waiting on.

    This happens for duplicate replies or replies that arrive after the
    caller gave up waiting.
    """

    pass


class UnknownResponseError(ProtocolError):
    """A successful reply carried a result that is not an object or number."""

    pass


class UnsupportedMessageError(ProtocolError):
    """The device sent a request frame, which clients do not serve."""

    pass


class InvalidMessageError(ProtocolError):
    """A frame could not be decoded or did not match any message schema."""

    pass


class RemoteError(XAPIError):
    """The device answered a command with a JSON-RPC error object.

    Args:
        code (int): The JSON-RPC error code.
        message (str): The error message sent by the device.
        data (object): Optional structured error details.
    """

    def __init__(self, code, message, data=None):
        super(RemoteError, self).__init__("error code: {}, {}".format(code, message),
                                          code=code, message=message, data=data)

        self.code = code
        self.message = message
        self.data = data


class RoutingError(XAPIError):
    """A notification could not be delivered to a subscriber."""

    pass


class MissingDataError(RoutingError):
    """No active subscription matched the notification payload."""

    pass


class MissingCallbackError(RoutingError):
    """A subscription matched but it has no callback to invoke."""

    pass


class MultipleErrors(XAPIError):
    """Several independent failures that must all be reported.

    Used when tearing down a group of subscriptions, where one failure must
    not hide the others.

    Args:
        errors (list of Exception): The individual errors, in the order they
            happened.
    """

    def __init__(self, errors):
        super(MultipleErrors, self).__init__("%d errors occurred" % len(errors),
                                             errors=[str(x) for x in errors])
        self.errors = list(errors)


def combine_errors(*errors):
    """Combine errors into a single exception.

    None entries are ignored and nested MultipleErrors are flattened.

    Returns:
        Exception: None if there were no errors, the error itself if there
            was exactly one, otherwise a MultipleErrors instance.
    """

    flat = []
    for err in errors:
        if err is None:
            continue

        if isinstance(err, MultipleErrors):
            flat.extend(err.errors)
        else:
            flat.append(err)

    if len(flat) == 0:
        return None

    if len(flat) == 1:
        return flat[0]

    return MultipleErrors(flat)


__all__ = ['XAPIError', 'LoopStoppingError', 'TimeoutExpiredError', 'ConnectError',
           'InvalidCredentialsError', 'NotConnectedError', 'ProtocolError',
           'MissingIdFieldError', 'MissingChannelError', 'UnknownResponseError',
           'UnsupportedMessageError', 'InvalidMessageError', 'RemoteError',
           'RoutingError', 'MissingDataError', 'MissingCallbackError', 'MultipleErrors',
           'combine_errors', 'ArgumentError', 'ValidationError', 'InternalError']
