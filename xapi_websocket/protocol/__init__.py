"""JSON-RPC message schemas and text framing used on the device websocket."""

from . import messages as MESSAGES
from .packing import pack, unpack, build_request

__all__ = ['MESSAGES', 'pack', 'unpack', 'build_request']
