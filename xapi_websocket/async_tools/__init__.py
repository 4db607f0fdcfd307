"""Utilities for running the asynchronous session from synchronous code."""

from .event_loop import BackgroundEventLoop, SharedLoop, BackgroundTask
from .awaitable_dict import AwaitableDict

__all__ = ['BackgroundEventLoop', 'SharedLoop', 'BackgroundTask', 'AwaitableDict']
