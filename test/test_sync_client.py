"""Tests for the blocking XAPIClient wrapper."""

import threading
import pytest
from xapi_websocket import XAPIClient, commands, paths
from xapi_websocket.exceptions import NotConnectedError, RemoteError
from fake_device import DEFAULT_RESULT, event_payload


@pytest.fixture(scope="function")
def sync_client(device, loop):
    client = XAPIClient(device.url, "bob", "secret", loop=loop)

    yield client

    client.close()


def test_start_and_commands(sync_client, device):
    connected = threading.Event()
    seen = []

    def _on_connect(client):
        seen.append(client)
        connected.set()

    sync_client.on_connect = _on_connect
    sync_client.start()

    assert connected.wait(2.0)
    assert seen == [sync_client]
    assert sync_client.connected

    assert sync_client.alert("Hi", "Body", 5) == DEFAULT_RESULT
    assert sync_client.mute() == DEFAULT_RESULT
    assert device.methods() == [commands.ALERT_DISPLAY, commands.MICROPHONES_MUTE]


def test_remote_error(sync_client, device):
    device.errors[commands.MICROPHONES_UNMUTE] = (1, "No microphones")
    sync_client.start()

    with pytest.raises(RemoteError):
        sync_client.unmute()


def test_subscribe(sync_client, device, loop):
    received = []
    got_event = threading.Event()

    def _on_volume(values):
        received.append(values)
        got_event.set()

    sync_client.start()
    cancel = sync_client.subscribe(paths.STATUS_AUDIO_VOLUME_LEVEL, _on_volume)

    loop.run_coroutine(device.notify(event_payload(paths.STATUS_AUDIO_VOLUME_LEVEL, 25)))
    assert got_event.wait(2.0)
    assert received == [[25]]

    cancel()
    cancel()
    assert len(device.requests_for(commands.FEEDBACK_UNSUBSCRIBE)) == 1


def test_prompt_callback(sync_client, device):
    async def _hook(device, message):
        await device.notify(event_payload(paths.EVENT_USER_INTERFACE_PROMPT_RESPONSE,
                                          {"FeedbackId": message['params']['FeedbackId'], "OptionId": 1}))

    device.hooks[commands.PROMPT_DISPLAY] = _hook
    answers = []
    answered = threading.Event()

    def _on_answer(canceled, value, error):
        answers.append((canceled, value, error))
        answered.set()

    sync_client.start()
    sync_client.prompt("Color", "Pick one", ["Red", "Blue"], _on_answer)

    assert answered.wait(2.0)
    assert answers == [(False, "Red", None)]


def test_overlapping_ratings_each_call_back(sync_client, device, loop):
    """Two ratings shown at once each get their own answer, in any order."""

    answers = {}
    answered = threading.Semaphore(0)

    def _callback(name):
        def _on_answer(canceled, value, error):
            answers[name] = (canceled, value, error)
            answered.release()

        return _on_answer

    sync_client.start()
    sync_client.rating("A", "First", _callback("first"))
    sync_client.rating("B", "Second", _callback("second"))

    first_id, second_id = [x['params']['FeedbackId'] for x in device.requests_for(commands.RATING_DISPLAY)]
    loop.run_coroutine(device.notify(event_payload(paths.EVENT_USER_INTERFACE_RATING_RESPONSE,
                                                   {"FeedbackId": second_id, "Rating": 5})))
    loop.run_coroutine(device.notify(event_payload(paths.EVENT_USER_INTERFACE_RATING_RESPONSE,
                                                   {"FeedbackId": first_id, "Rating": 1})))

    assert answered.acquire(timeout=2.0)
    assert answered.acquire(timeout=2.0)
    assert answers == {"first": (False, 1, None), "second": (False, 5, None)}


def test_text_input_callback_on_disconnect(sync_client, device, loop):
    answers = []
    answered = threading.Event()

    def _on_answer(canceled, value, error):
        answers.append((canceled, value, error))
        answered.set()

    sync_client.start()
    sync_client.text_input("Your name?", _on_answer, title="Hello")
    loop.run_coroutine(device.disconnect())

    assert answered.wait(2.0)

    canceled, value, error = answers[0]
    assert canceled is True
    assert value is None
    assert isinstance(error, NotConnectedError)


def test_connect_and_run(sync_client, device):
    errors = []

    def _runner():
        try:
            sync_client.run()
        except Exception as err:  # pylint:disable=broad-except;Reported to the test thread
            errors.append(err)

    sync_client.connect()
    thread = threading.Thread(target=_runner)
    thread.start()

    assert sync_client.get("Status Audio Volume") == DEFAULT_RESULT

    sync_client.close()
    thread.join(2.0)

    assert not thread.is_alive()
    assert errors == []
    assert not sync_client.connected
