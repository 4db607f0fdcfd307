"""Helper functions for packing/unpacking JSON-RPC text frames."""

import json
from ..exceptions import InvalidMessageError
from .messages import JSONRPC_VERSION


def pack(message):
    """Encode a message dict as a compact JSON text frame."""

    return json.dumps(message, separators=(',', ':'))


def unpack(frame):
    """Decode a JSON text frame into a dict.

    Raises:
        InvalidMessageError: The frame is not valid JSON or is not a JSON
            object.
    """

    if isinstance(frame, bytes):
        try:
            frame = frame.decode('utf-8')
        except UnicodeDecodeError as err:
            raise InvalidMessageError("Frame is not valid utf-8", reason=str(err)) from err

    try:
        message = json.loads(frame)
    except ValueError as err:
        raise InvalidMessageError("Frame is not valid JSON", reason=str(err), frame=frame) from err

    if not isinstance(message, dict):
        raise InvalidMessageError("Frame is not a JSON object", frame=frame)

    return message


def build_request(msg_id, method, params=None):
    """Build a JSON-RPC request message.

    Args:
        msg_id (int): The sequence id used to correlate the reply.
        method (str): The remote method name.
        params (object): Optional arguments, omitted from the frame if None.

    Returns:
        dict: The request message, ready for pack().
    """

    message = dict(jsonrpc=JSONRPC_VERSION, id=msg_id, method=method)
    if params is not None:
        message['params'] = params

    return message
