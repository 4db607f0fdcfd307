"""JSON-RPC 2.0 frame schemas exchanged with the device.

Every inbound frame is classified into exactly one kind by classify().  The
schemas reject unexpected keys so that a notification (no id) can never be
mistaken for a request (method and id).
"""

from ..schema_verify import Verifier, DictionaryVerifier, StringVerifier, IntVerifier, \
    NumberVerifier, LiteralVerifier, OptionsVerifier, NoneVerifier

JSONRPC_VERSION = "2.0"

REQUEST = 'request'
SUCCESS = 'success'
ERROR = 'error'
NOTIFICATION = 'notification'
INVALID = 'invalid'

_VERSION = LiteralVerifier(JSONRPC_VERSION)
_ID = OptionsVerifier(NumberVerifier(), StringVerifier())

RequestMessage = DictionaryVerifier()
RequestMessage.add_required('jsonrpc', _VERSION)
RequestMessage.add_required('id', _ID)
RequestMessage.add_required('method', StringVerifier())
RequestMessage.add_optional('params', Verifier())

SuccessMessage = DictionaryVerifier()
SuccessMessage.add_required('jsonrpc', _VERSION)
SuccessMessage.add_required('id', _ID)
SuccessMessage.add_required('result', Verifier())

ErrorObject = DictionaryVerifier(allow_extra=True)
ErrorObject.add_required('code', IntVerifier())
ErrorObject.add_required('message', StringVerifier())
ErrorObject.add_optional('data', Verifier())

ErrorMessage = DictionaryVerifier()
ErrorMessage.add_required('jsonrpc', _VERSION)
ErrorMessage.add_required('id', OptionsVerifier(_ID, NoneVerifier()))
ErrorMessage.add_required('error', ErrorObject)

NotificationMessage = DictionaryVerifier()
NotificationMessage.add_required('jsonrpc', _VERSION)
NotificationMessage.add_required('method', StringVerifier())
NotificationMessage.add_optional('params', Verifier())

_KINDS = [(REQUEST, RequestMessage), (SUCCESS, SuccessMessage), (ERROR, ErrorMessage),
          (NOTIFICATION, NotificationMessage)]


def classify(frame):
    """Determine which kind of JSON-RPC message a decoded frame is.

    Args:
        frame (object): A decoded JSON document.

    Returns:
        str: One of REQUEST, SUCCESS, ERROR, NOTIFICATION or INVALID.
    """

    for kind, schema in _KINDS:
        if schema.matches(frame):
            return kind

    return INVALID
