import logging
import pytest
from xapi_websocket import AsyncXAPIClient
from xapi_websocket.async_tools import BackgroundEventLoop
from fake_device import FakeDevice

logger = logging.getLogger(__name__)


@pytest.fixture(scope="function")
def loop():
    """Get a fresh BackgroundEventLoop."""

    event_loop = BackgroundEventLoop()
    event_loop.start()

    yield event_loop

    event_loop.stop()


@pytest.fixture(scope="function")
def device(loop):
    """A running fake device."""

    fake = FakeDevice()
    loop.run_coroutine(fake.start())

    logger.info("Fake device listening on port %d", fake.port)
    yield fake

    loop.run_coroutine(fake.stop())


@pytest.fixture(scope="function")
def client(device, loop):
    """An AsyncXAPIClient connected to the fake device with its receive loop running."""

    xapi = AsyncXAPIClient(device.url, "bob", "secret", loop=loop)
    loop.run_coroutine(xapi.start())

    yield xapi

    loop.run_coroutine(xapi.stop())
