"""A client for the xAPI of video devices over a JSON-RPC websocket."""

from .async_client import AsyncXAPIClient
from .client import XAPIClient
from .interaction import Interaction, InteractionResult
from .paths import Path
from .router import FIRST_MATCH, LONGEST_PATH, FAN_OUT, Subscription, SubscriptionRegistry
from .transport import encode_credentials
from .exceptions import XAPIError

__all__ = ['AsyncXAPIClient', 'XAPIClient', 'Interaction', 'InteractionResult', 'Path',
           'FIRST_MATCH', 'LONGEST_PATH', 'FAN_OUT', 'Subscription', 'SubscriptionRegistry',
           'encode_credentials', 'XAPIError']
