"""Hierarchical xAPI paths and the catalog of well known paths.

A Path addresses a node in the device's status, command or event tree, for
example ``Status Audio Volume``.  The same path is rendered three ways:
as the ``Query`` argument of a feedback subscription, as the ``Path``
argument of a get, and as a ``$.a.b`` query used to look for data at that
location inside an incoming notification.

Segments are not validated, so any path the device understands can be built
even if it is not listed in this module.
"""

from jsonpath_ng.jsonpath import Child, Fields, Root


class Path:
    """An immutable, ordered sequence of path segments.

    Args:
        path (str or iterable of str): Either a space delimited string such
            as ``"Status Audio Volume"`` or an iterable of segments.
    """

    __slots__ = ('_segments',)

    def __init__(self, path):
        if isinstance(path, Path):
            segments = path.segments
        elif isinstance(path, str):
            segments = tuple(path.split())
        else:
            segments = tuple(str(x) for x in path)

        object.__setattr__(self, '_segments', segments)

    def __setattr__(self, name, value):
        raise AttributeError("Path objects are immutable")

    @property
    def segments(self):
        """tuple of str: The path segments in order."""

        return self._segments

    def child(self, *segments):
        """Return a new path extended with more segments."""

        return Path(self._segments + tuple(segments))

    def to_subscribe_query(self):
        """Arguments for a feedback subscribe or unsubscribe command."""

        return {"Query": list(self._segments)}

    def to_get_params(self):
        """Arguments for a get command."""

        return {"Path": list(self._segments)}

    def to_dot_path(self):
        """The query string used to probe notifications, ``$.a.b``."""

        return ".".join(("$",) + self._segments)

    def to_jsonpath(self):
        """Compile this path into a jsonpath expression.

        The expression is built from its segments rather than parsed from
        to_dot_path() so that segments with unusual characters still work.
        """

        expr = Root()
        for segment in self._segments:
            expr = Child(expr, Fields(segment))

        return expr

    def find(self, payload):
        """Find the values stored at this path inside a payload.

        Args:
            payload (object): A decoded notification payload.

        Returns:
            list: The matched values, empty if nothing is stored there.
        """

        return [match.value for match in self.to_jsonpath().find(payload)]

    def __len__(self):
        return len(self._segments)

    def __iter__(self):
        return iter(self._segments)

    def __eq__(self, other):
        if isinstance(other, Path):
            return self._segments == other.segments

        return NotImplemented

    def __hash__(self):
        return hash(self._segments)

    def __str__(self):
        return " ".join(self._segments)

    def __repr__(self):
        return "Path(%r)" % str(self)


STATUS = Path("Status")
STATUS_SYSTEM_UNIT = Path("Status SystemUnit")
STATUS_SYSTEM_UNIT_STATE_NUMBER_OF_ACTIVE_CALLS = Path("Status SystemUnit State NumberOfActiveCalls")
STATUS_AUDIO_VOLUME_LEVEL = Path("Status Audio Volume")
STATUS_AUDIO_MICROPHONES_MUTE = Path("Status Audio Microphones Mute")
STATUS_VIDEO_INPUT_MAIN_VIDEO_MUTE = Path("Status Video Input MainVideoMute")

EVENT = Path("Event")
EVENT_USER_INTERFACE = Path("Event UserInterface")
EVENT_USER_INTERFACE_EXTENSION = Path("Event UserInterface Extensions")
EVENT_USER_INTERFACE_EXTENSIONS_EVENT = Path("Event UserInterface Extensions Event")
EVENT_USER_INTERFACE_EXTENSIONS_EVENT_RELEASED = Path("Event UserInterface Extensions Event Released")
EVENT_USER_INTERFACE_EXTENSIONS_EVENT_CLICKED = Path("Event UserInterface Extensions Event Pressed")
EVENT_USER_INTERFACE_EXTENSIONS_EVENT_CHANGED = Path("Event UserInterface Extensions Event Changed")
EVENT_USER_INTERFACE_WIDGET_ACTION = Path("Event UserInterface Extensions Widget Action")
EVENT_USER_INTERFACE_PANEL_CLICKED = Path("Event UserInterface Extensions Panel Clicked")
EVENT_USER_INTERFACE_PANEL_CLOSE = Path("Event UserInterface Extensions Panel Close")
EVENT_USER_INTERFACE_PANEL_OPEN = Path("Event UserInterface Extensions Panel Open")
EVENT_USER_INTERFACE_PROMPT_RESPONSE = Path("Event UserInterface Message Prompt Response")
EVENT_USER_INTERFACE_PROMPT_CLEARED = Path("Event UserInterface Message Prompt Cleared")
EVENT_USER_INTERFACE_RATING_RESPONSE = Path("Event UserInterface Message Rating Response")
EVENT_USER_INTERFACE_TEXT_INPUT_RESPONSE = Path("Event UserInterface Message TextInput Response")
EVENT_USER_INTERFACE_TEXT_INPUT_CLEAR = Path("Event UserInterface Message TextInput Clear")
EVENT_USER_INTERFACE_MESSAGE_ALERT_CLEARED = Path("Event UserInterface Message Alert Cleared")
EVENT_USER_INTERFACE_MESSAGE_RATING_CLEARED = Path("Event UserInterface Message Rating Cleared")
EVENT_USER_INTERFACE_MESSAGE_TEXT_LINE_CLEARED = Path("Event UserInterface Message TextLine Cleared")
EVENT_SHUTDOWN = Path("Event Shutdown")
EVENT_INCOMING_CALL_INDICATION = Path("Event IncomingCallIndication")
