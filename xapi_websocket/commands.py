"""Device command names and the argument builders for them.

The builders are pure functions that shape the structured arguments a command
expects.  They perform no I/O and are used by both the async and the
synchronous clients.
"""

import datetime
from .exceptions import ArgumentError

WIDGET_SET_VALUE = "xCommand/UserInterface/Extensions/Widget/SetValue"
ALERT_DISPLAY = "xCommand/UserInterface/Message/Alert/Display"
ALERT_CLEAR = "xCommand/UserInterface/Message/Alert/Clear"
PROMPT_DISPLAY = "xCommand/UserInterface/Message/Prompt/Display"
TEXT_INPUT_DISPLAY = "xCommand/UserInterface/Message/TextInput/Display"
RATING_DISPLAY = "xCommand/UserInterface/Message/Rating/Display"
TEXT_LINE_DISPLAY = "xCommand/UserInterface/Message/TextLine/Display"
TEXT_LINE_CLEAR = "xCommand/UserInterface/Message/TextLine/Clear"
MICROPHONES_MUTE = "xCommand/Audio/Microphones/Mute"
MICROPHONES_UNMUTE = "xCommand/Audio/Microphones/Unmute"
FEEDBACK_SUBSCRIBE = "xFeedback/Subscribe"
FEEDBACK_UNSUBSCRIBE = "xFeedback/Unsubscribe"
GET = "xGet"

TEXT_FIELD = "Text"
TITLE_FIELD = "Title"
DURATION_FIELD = "Duration"
FEEDBACK_ID_FIELD = "FeedbackId"

MAX_PROMPT_OPTIONS = 5


class TextInputType:
    """Kinds of text input, controlling the keyboard shown and masking."""

    SINGLE_LINE = "SingleLine"
    NUMERIC = "Numeric"
    PASSWORD = "Password"
    PIN = "PIN"

    ALL = frozenset([SINGLE_LINE, NUMERIC, PASSWORD, PIN])


def duration_seconds(duration):
    """Convert a duration to float seconds.

    Args:
        duration (float, int or datetime.timedelta): The duration.

    Returns:
        float: The duration in seconds.
    """

    if isinstance(duration, datetime.timedelta):
        return duration.total_seconds()

    return float(duration)


def alert_args(title, text, duration):
    """Arguments for an alert shown in the corner of the screen."""

    return {
        TITLE_FIELD: title,
        TEXT_FIELD: text,
        DURATION_FIELD: duration_seconds(duration)
    }


def text_line_args(text, duration):
    """Arguments for a line of text centered on the screen.

    A duration of 0 keeps the text up until it is cleared.
    """

    return {
        TEXT_FIELD: text,
        DURATION_FIELD: duration_seconds(duration)
    }


def prompt_args(title, text, options, feedback_id):
    """Arguments for a prompt offering the user up to five choices.

    Raises:
        ArgumentError: There are no options or more than five.
    """

    options = list(options)
    if len(options) == 0 or len(options) > MAX_PROMPT_OPTIONS:
        raise ArgumentError("A prompt needs between 1 and %d options" % MAX_PROMPT_OPTIONS,
                            count=len(options))

    args = {
        FEEDBACK_ID_FIELD: feedback_id,
        TITLE_FIELD: title,
        TEXT_FIELD: text
    }

    for i, option in enumerate(options):
        args["Option.%d" % (i + 1)] = option

    return args


def rating_args(title, text, feedback_id):
    """Arguments for a five star rating dialog."""

    return {
        FEEDBACK_ID_FIELD: feedback_id,
        TITLE_FIELD: title,
        TEXT_FIELD: text
    }


# pylint:disable=too-many-arguments;Every keyword maps to an optional device argument
def text_input_args(text, feedback_id, duration=None, input_text=None, input_type=None,
                    keyboard_hidden=False, placeholder=None, submit_text=None, title=None):
    """Arguments for a free form text input dialog.

    Args:
        text (str): The description shown above the input box.
        feedback_id (str): Tag echoed back in the response events.
        duration (float): How long to show the dialog, omitted means until
            the user answers or it is cleared.
        input_text (str): Text describing what the input box is for.
        input_type (str): One of the TextInputType values.
        keyboard_hidden (bool): Do not show the on screen keyboard.
        placeholder (str): Text shown in the empty input box.
        submit_text (str): The label of the submit button.
        title (str): The dialog title.

    Raises:
        ArgumentError: input_type is not a known TextInputType.
    """

    args = {
        FEEDBACK_ID_FIELD: feedback_id,
        TEXT_FIELD: text
    }

    if duration is not None:
        args[DURATION_FIELD] = duration_seconds(duration)

    if input_text is not None:
        args["InputText"] = input_text

    if input_type is not None:
        if input_type not in TextInputType.ALL:
            raise ArgumentError("Unknown text input type", input_type=input_type)

        args["InputType"] = input_type

    if keyboard_hidden:
        args["KeyboardState"] = "Closed"

    if placeholder is not None:
        args["Placeholder"] = placeholder

    if submit_text is not None:
        args["SubmitText"] = submit_text

    if title is not None:
        args[TITLE_FIELD] = title

    return args


def widget_value_args(widget_id, value):
    """Arguments to update the value of a UI extension widget."""

    return {
        "WidgetId": widget_id,
        "Value": value
    }
