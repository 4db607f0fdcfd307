"""xapi-timer script main entry point.

Shows a timeline of alerts on a device.  The timeline is read from a YAML
file such as::

    url: wss://device.example.com/ws
    user: admin
    password: secret
    insecure: true
    reconnect: true
    displayTime: 10s
    timeLine:
      - title: Break
        message: Five minutes left
        pause: 25m
      - title: Break
        message: Time is up
        pause: 5m

Each entry waits for its pause and then shows its alert for displayTime.
"""

import sys
import re
import time
import logging
import argparse
import yaml
from ..client import XAPIClient
from ..exceptions import ArgumentError, ConnectError, NotConnectedError, ProtocolError, RemoteError, \
    ValidationError
from ..schema_verify import DictionaryVerifier, ListVerifier, StringVerifier, NumberVerifier, \
    BooleanVerifier, OptionsVerifier
from ..async_tools import SharedLoop

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 30.0

_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0
}

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')

_Duration = OptionsVerifier(NumberVerifier(), StringVerifier(), desc="seconds or a duration like 1m30s")

TimelineEntry = DictionaryVerifier(desc="One alert of the timeline")
TimelineEntry.add_optional('title', StringVerifier())
TimelineEntry.add_optional('message', StringVerifier())
TimelineEntry.add_optional('pause', _Duration)

ConfigFile = DictionaryVerifier(desc="xapi-timer configuration")
ConfigFile.add_required('url', StringVerifier())
ConfigFile.add_optional('user', StringVerifier())
ConfigFile.add_optional('password', StringVerifier())
ConfigFile.add_optional('insecure', BooleanVerifier())
ConfigFile.add_optional('reconnect', BooleanVerifier())
ConfigFile.add_optional('displayTime', _Duration)
ConfigFile.add_optional('timeLine', ListVerifier(TimelineEntry))


class ScriptError(Exception):
    """An error raised to end the command line script with an error code."""

    def __init__(self, message, code):
        super(ScriptError, self).__init__(message)

        self.msg = message
        self.code = code


def parse_duration(value):
    """Convert a configured duration into seconds.

    Numbers are taken as seconds.  Strings are a sequence of numbers with
    units, such as ``"500ms"``, ``"2m"`` or ``"1h30m"``.

    Raises:
        ArgumentError: The string is not a valid duration.
    """

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise ArgumentError("Durations cannot be negative", duration=value)

        return float(value)

    text = value.strip()
    if text in ("0", ""):
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ArgumentError("Invalid duration", duration=value)

        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()

    return total


def load_config(path):
    """Read, validate and normalize the YAML config file.

    Returns:
        dict: The configuration with defaults filled in and every duration
            converted to seconds.

    Raises:
        ScriptError: With code 2 if the file cannot be read, 3 if it is not
            valid YAML and 4 if its contents are invalid.
    """

    try:
        with open(path, "r") as conf:
            raw = yaml.safe_load(conf)
    except IOError as exc:
        raise ScriptError("Could not open config file %s due to %s" % (path, str(exc)), 2)
    except yaml.YAMLError as exc:
        raise ScriptError("Could not parse YAML from config file %s due to %s" % (path, str(exc)), 3)

    try:
        ConfigFile.verify(raw)

        config = {
            'url': raw['url'],
            'user': raw.get('user', ''),
            'password': raw.get('password', ''),
            'insecure': raw.get('insecure', False),
            'reconnect': raw.get('reconnect', False),
            'displayTime': parse_duration(raw.get('displayTime', 0)),
            'timeLine': []
        }

        for entry in raw.get('timeLine', []):
            config['timeLine'].append({
                'title': entry.get('title', ''),
                'message': entry.get('message', ''),
                'pause': parse_duration(entry.get('pause', 0))
            })
    except (ValidationError, ArgumentError) as exc:
        raise ScriptError("Invalid config file %s: %s" % (path, str(exc)), 4)

    return config


class TimelineRunner:
    """Plays a timeline of alerts on a device, reconnecting if asked to.

    With reconnect enabled, a lost connection is retried with exponential
    backoff and the timeline resumes at the entry whose alert failed.  The
    backoff starts again from its initial value after every alert that is
    shown successfully.

    Args:
        client (XAPIClient): The client connected to the device.
        timeline (list of dict): Entries with title, message and pause.
        display_time (float): How long each alert is shown in seconds.
        reconnect (bool): Reconnect when the connection is lost.
        sleep (callable): Used to wait, replaceable for testing.
    """

    # pylint:disable=too-many-arguments;Every argument is independent timer configuration
    def __init__(self, client, timeline, display_time, reconnect=False, sleep=time.sleep):
        self.position = 0

        self._client = client
        self._timeline = timeline
        self._display_time = display_time
        self._reconnect = reconnect
        self._sleep = sleep
        self._backoff = INITIAL_BACKOFF
        self._logger = logging.getLogger(__name__)

    def run(self):
        """Play the whole timeline."""

        while True:
            try:
                self._client.start()
                self._logger.info("Connected to %s", self._client.url)
                self._play()
                return
            except (ConnectError, NotConnectedError, ProtocolError) as exc:
                if not self._reconnect:
                    raise

                self._logger.warning("Lost connection to %s (%s), retrying in %.0f seconds",
                                     self._client.url, exc, self._backoff)
                self._client.close()
                self._sleep(self._backoff)
                self._backoff = min(self._backoff * 2, MAX_BACKOFF)

    def _play(self):
        while self.position < len(self._timeline):
            entry = self._timeline[self.position]

            self._logger.info("Sleeping for %.1f seconds", entry['pause'])
            self._sleep(entry['pause'])

            self._logger.info("Sending message: %s", entry['message'])
            try:
                self._client.alert(entry['title'], entry['message'], self._display_time)
            except RemoteError as exc:
                self._logger.error("Alert error: %s", exc)

            self.position += 1
            self._backoff = INITIAL_BACKOFF


def build_parser():
    """Build the script's argument parser."""

    parser = argparse.ArgumentParser(description="Show a timeline of alerts on an xAPI device")
    parser.add_argument('-c', '--config', default="config.yaml", help="yaml config file with the timeline")
    parser.add_argument('-v', '--verbose', action="count", default=0, help="Increase logging verbosity")

    return parser


def configure_logging(verbosity):
    """Set up the global logging level.

    Args:
        verbosity (int): The logging verbosity
    """

    root = logging.getLogger()

    formatter = logging.Formatter('%(asctime)s.%(msecs)03d %(levelname).3s %(name)s %(message)s',
                                  '%y-%m-%d %H:%M:%S')
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    loglevels = [logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG]
    if verbosity >= len(loglevels):
        verbosity = len(loglevels) - 1

    level = loglevels[verbosity]

    root.setLevel(level)
    root.addHandler(handler)


def main(argv=None, loop=SharedLoop, sleep=time.sleep):
    """Main entry point for xapi-timer."""

    should_raise = argv is not None

    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    cmd_args = parser.parse_args(argv)

    configure_logging(cmd_args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(cmd_args.config)

        client = XAPIClient(config['url'], config['user'], config['password'],
                            insecure=config['insecure'], loop=loop)
        runner = TimelineRunner(client, config['timeLine'], config['displayTime'],
                                reconnect=config['reconnect'], sleep=sleep)

        try:
            runner.run()
        finally:
            client.close()
    except ScriptError as exc:
        if should_raise:
            raise exc

        logger.fatal("Quitting due to error: %s", exc.msg)
        return exc.code
    except Exception as exc:  # pylint: disable=W0703
        if should_raise:
            raise exc

        logger.exception("Fatal error running timer")
        return 1

    return 0
