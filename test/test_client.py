"""End to end tests of AsyncXAPIClient against a fake device."""

import asyncio
import datetime
import logging
import pytest
from xapi_websocket import AsyncXAPIClient, FAN_OUT, commands, paths
from xapi_websocket.exceptions import ArgumentError, ConnectError, InternalError, InvalidCredentialsError, \
    InvalidMessageError, MissingIdFieldError, NotConnectedError, RemoteError, TimeoutExpiredError, \
    UnsupportedMessageError
from fake_device import DEFAULT_RESULT, event_payload


async def _wait_until(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


def test_alert_frame(client, device, loop):
    """An alert sends exactly one command frame and resolves on the reply."""

    result = loop.run_coroutine(client.alert("Hi", "Body", 5))

    assert result == DEFAULT_RESULT
    assert len(device.requests) == 1

    request = device.requests[0]
    assert request['method'] == commands.ALERT_DISPLAY
    assert request['params'] == {"Title": "Hi", "Text": "Body", "Duration": 5.0}
    assert isinstance(request['params']['Duration'], float)
    assert isinstance(request['id'], int)


def test_simple_commands(client, device, loop):
    loop.run_coroutine(client.mute())
    loop.run_coroutine(client.unmute())
    loop.run_coroutine(client.alert_clear())
    loop.run_coroutine(client.text_line("Welcome", datetime.timedelta(seconds=3)))
    loop.run_coroutine(client.text_line_clear())
    loop.run_coroutine(client.set_widget_value("volume", 30))

    assert device.methods() == [commands.MICROPHONES_MUTE, commands.MICROPHONES_UNMUTE, commands.ALERT_CLEAR,
                                commands.TEXT_LINE_DISPLAY, commands.TEXT_LINE_CLEAR, commands.WIDGET_SET_VALUE]
    assert 'params' not in device.requests[0]
    assert device.requests[3]['params'] == {"Text": "Welcome", "Duration": 3.0}
    assert device.requests[5]['params'] == {"WidgetId": "volume", "Value": 30}

    ids = [x['id'] for x in device.requests]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_get(client, device, loop):
    device.results[commands.GET] = lambda params: 50

    assert loop.run_coroutine(client.get(paths.STATUS_AUDIO_VOLUME_LEVEL)) == 50
    assert device.requests[0]['params'] == {"Path": ["Status", "Audio", "Volume"]}


def test_remote_error(client, device, loop):
    device.errors[commands.MICROPHONES_MUTE] = (-32601, "Method not found")

    with pytest.raises(RemoteError) as exc_info:
        loop.run_coroutine(client.mute())

    assert exc_info.value.code == -32601
    assert exc_info.value.message == "Method not found"

    # Other commands are not affected
    assert loop.run_coroutine(client.unmute()) == DEFAULT_RESULT


def test_out_of_order_replies(client, device, loop):
    device.held.add(commands.GET)
    device.results[commands.GET] = lambda params: {"path": params["Path"]}

    async def _run():
        first = asyncio.ensure_future(client.get("Status A"))
        second = asyncio.ensure_future(client.get("Status B"))
        await device.wait_for_held(2)

        await device.reply(device.held_requests[1])
        assert await second == {"path": ["Status", "B"]}
        assert not first.done()

        await device.reply(device.held_requests[0])
        assert await first == {"path": ["Status", "A"]}

    loop.run_coroutine(_run())


def test_invoke_timeout(client, device, loop):
    device.held.add(commands.MICROPHONES_MUTE)

    with pytest.raises(TimeoutExpiredError):
        loop.run_coroutine(client.invoke(commands.MICROPHONES_MUTE, timeout=0.1))

    assert client.pending_count == 0

    # The late reply is dropped and the session keeps working
    loop.run_coroutine(device.release())
    assert loop.run_coroutine(client.unmute()) == DEFAULT_RESULT
    assert client.running


def test_subscribe_dispatch(client, device, loop):
    """A matching notification reaches exactly the subscribed callback."""

    async def _run():
        volume = asyncio.Queue()
        prompts = asyncio.Queue()

        async def _on_volume(values):
            await volume.put(values)

        async def _on_prompt(values):
            await prompts.put(values)

        await client.subscribe(paths.STATUS_AUDIO_VOLUME_LEVEL, _on_volume)
        await client.subscribe(paths.EVENT_USER_INTERFACE_PROMPT_RESPONSE, _on_prompt)

        await device.notify(event_payload(paths.STATUS_AUDIO_VOLUME_LEVEL, 70))
        values = await asyncio.wait_for(volume.get(), 2.0)

        # Everything before the next reply has been dispatched
        await client.mute()
        assert prompts.empty()

        return values

    assert loop.run_coroutine(_run()) == [70]

    subscribes = device.requests_for(commands.FEEDBACK_SUBSCRIBE)
    assert [x['params'] for x in subscribes] == [{"Query": ["Status", "Audio", "Volume"]},
                                                 {"Query": ["Event", "UserInterface", "Message", "Prompt",
                                                            "Response"]}]


def test_sync_callback_runs_on_worker(client, device, loop):
    async def _run():
        done = asyncio.Event()
        seen = []

        def _on_volume(values):
            seen.append((values, loop.inside_loop()))
            loop.get_loop().call_soon_threadsafe(done.set)

        await client.subscribe(paths.STATUS_AUDIO_VOLUME_LEVEL, _on_volume)
        await device.notify(event_payload(paths.STATUS_AUDIO_VOLUME_LEVEL, 10))
        await asyncio.wait_for(done.wait(), 2.0)
        return seen

    assert loop.run_coroutine(_run()) == [([10], False)]


def test_callback_error_does_not_stop_loop(client, device, loop, caplog):
    caplog.set_level(logging.WARNING)

    async def _broken(_values):
        raise ValueError("broken callback")

    async def _run():
        await client.subscribe("Event", _broken)
        await device.notify({"Event": {"Shutdown": {}}})
        await _wait_until(lambda: "broken callback" in caplog.text)

    loop.run_coroutine(_run())
    assert loop.run_coroutine(client.mute()) == DEFAULT_RESULT


def test_callback_tasks_held_until_done(client, device, loop):
    """Running callback tasks are referenced by the client until they finish."""

    async def _run():
        release = asyncio.Event()

        async def _slow(_values):
            await release.wait()

        await client.subscribe("Event", _slow)
        await device.notify({"Event": {"Shutdown": {}}})
        await _wait_until(lambda: len(client._callback_tasks) == 1)

        release.set()
        await _wait_until(lambda: len(client._callback_tasks) == 0)

    loop.run_coroutine(_run())


def test_unsubscribe(client, device, loop, caplog):
    """After cancelling, a matching notification has nowhere to go."""

    caplog.set_level(logging.WARNING)
    received = []

    async def _on_volume(values):
        received.append(values)

    async def _run():
        subscription = await client.subscribe(paths.STATUS_AUDIO_VOLUME_LEVEL, _on_volume)
        await subscription.cancel()
        await subscription.cancel()

        await device.notify(event_payload(paths.STATUS_AUDIO_VOLUME_LEVEL, 70))
        await client.mute()

    loop.run_coroutine(_run())

    assert received == []
    assert client.subscriptions == []
    assert "missing response data" in caplog.text
    assert client.running

    unsubscribes = device.requests_for(commands.FEEDBACK_UNSUBSCRIBE)
    assert len(unsubscribes) == 1
    assert unsubscribes[0]['params'] == {"Query": ["Status", "Audio", "Volume"]}


def test_duplicate_paths_have_own_handles(client, device, loop):
    async def _run():
        first = await client.subscribe("Event", lambda values: None)
        second = await client.subscribe("Event", lambda values: None)

        assert client.subscriptions == [first, second]
        await first.cancel()
        assert client.subscriptions == [second]

    loop.run_coroutine(_run())


def test_fan_out_policy(device, loop):
    client = AsyncXAPIClient(device.url, "bob", "secret", dispatch_policy=FAN_OUT, loop=loop)
    loop.run_coroutine(client.start())

    async def _run():
        seen = asyncio.Queue()

        async def _on_event(values):
            await seen.put(values)

        await client.subscribe("Event", _on_event)
        await client.subscribe("Event Shutdown", _on_event)
        await device.notify({"Event": {"Shutdown": {"Reason": "x"}}})

        return [await asyncio.wait_for(seen.get(), 2.0) for _i in range(2)]

    try:
        results = loop.run_coroutine(_run())
    finally:
        loop.run_coroutine(client.stop())

    assert sorted(results, key=str) == sorted([[{"Shutdown": {"Reason": "x"}}], [{"Reason": "x"}]], key=str)


def test_subscribe_failure_not_registered(client, device, loop):
    device.errors[commands.FEEDBACK_SUBSCRIBE] = (400, "Unknown path")

    with pytest.raises(RemoteError):
        loop.run_coroutine(client.subscribe("Event Nonsense", lambda values: None))

    assert client.subscriptions == []


def test_missing_channel_is_not_fatal(client, device, loop, caplog):
    caplog.set_level(logging.WARNING)

    loop.run_coroutine(device.send_raw('{"jsonrpc":"2.0","id":999,"result":{}}'))

    assert loop.run_coroutine(client.mute()) == DEFAULT_RESULT
    assert client.running
    assert "missing response channel" in caplog.text


def test_invalid_frame_fails_caller(client, device, loop):
    """A frame that matches no schema but carries an id fails that command."""

    device.held.add(commands.MICROPHONES_MUTE)

    async def _run():
        task = asyncio.ensure_future(client.mute())
        await device.wait_for_held()

        msg_id = device.held_requests[0]['id']
        await device.send_raw('{"jsonrpc":"2.0","id":%d,"bogus":true}' % msg_id)

        with pytest.raises(InvalidMessageError):
            await task

    loop.run_coroutine(_run())
    assert client.running


def _run_until_fatal(device, loop, frame, hold=None):
    """Run a receive loop, push a frame and return what run() and a pending command raised."""

    client = AsyncXAPIClient(device.url, "bob", "secret", loop=loop)
    if hold is not None:
        device.held.add(hold)

    async def _run():
        await client.connect()
        runner = asyncio.ensure_future(client.run())

        pending = asyncio.ensure_future(client.mute())
        await device.wait_for_held()

        await device.send_raw(frame)

        results = await asyncio.gather(runner, pending, return_exceptions=True)
        return results

    try:
        return client, loop.run_coroutine(_run())
    finally:
        loop.run_coroutine(client.stop())


@pytest.mark.parametrize("frame,error", [
    ('{"jsonrpc":"2.0","id":1,"method":"xCommand/Dial","params":{}}', UnsupportedMessageError),
    ('{"jsonrpc":"2.0","id":null,"error":{"code":-32700,"message":"Parse error"}}', MissingIdFieldError),
    ('{"jsonrpc":"2.0","result":{}}', MissingIdFieldError),
    ('this is not json', InvalidMessageError)
])
def test_fatal_frames(device, loop, frame, error):
    client, (run_result, pending_result) = _run_until_fatal(device, loop, frame,
                                                            hold=commands.MICROPHONES_MUTE)

    assert isinstance(run_result, error)
    assert isinstance(pending_result, NotConnectedError)
    assert not client.running
    assert not client.connected

    with pytest.raises(NotConnectedError):
        loop.run_coroutine(client.mute())


def test_device_disconnect(client, device, loop):
    device.held.add(commands.MICROPHONES_MUTE)

    async def _run():
        await client.subscribe("Event", lambda values: None)

        task = asyncio.ensure_future(client.mute())
        await device.wait_for_held()
        await device.disconnect()

        with pytest.raises(NotConnectedError):
            await task

        await _wait_until(lambda: not client.running)

    loop.run_coroutine(_run())

    assert not client.connected
    assert client.subscriptions == []


def test_reconnect_after_close(client, device, loop):
    loop.run_coroutine(client.stop())
    loop.run_coroutine(client.stop())
    assert not client.connected

    loop.run_coroutine(client.start())
    assert loop.run_coroutine(client.mute()) == DEFAULT_RESULT


def test_not_connected(device, loop):
    client = AsyncXAPIClient(device.url, "bob", "secret", loop=loop)

    with pytest.raises(NotConnectedError):
        loop.run_coroutine(client.mute())

    with pytest.raises(NotConnectedError):
        loop.run_coroutine(client.run())

    # Closing a client that never connected is harmless
    loop.run_coroutine(client.stop())


def test_already_running(client, loop):
    with pytest.raises(InternalError):
        loop.run_coroutine(client.run())

    with pytest.raises(InternalError):
        loop.run_coroutine(client.connect())


def test_connect_errors(loop):
    client = AsyncXAPIClient("ws://127.0.0.1:1/ws", "bob", "secret", loop=loop)
    with pytest.raises(ConnectError):
        loop.run_coroutine(client.connect())

    client = AsyncXAPIClient("ws://127.0.0.1:1/ws", "", "secret", loop=loop)
    with pytest.raises(InvalidCredentialsError):
        loop.run_coroutine(client.connect())


def test_subscribe_requires_callable(client, device, loop):
    with pytest.raises(ArgumentError):
        loop.run_coroutine(client.subscribe("Event", "not callable"))

    assert device.requests == []
