"""A background asyncio event loop shared by synchronous callers.

The websocket session is fully asynchronous but most callers of this package
are plain synchronous programs.  A BackgroundEventLoop runs an asyncio loop in
a daemon thread so that synchronous code can inject coroutines into it and
block until they finish using run_coroutine().

Long running coroutines, like the receive loop of a device session, are
scheduled with add_task() and are stopped cleanly when the loop is stopped.

There is a single global instance, SharedLoop, that is used by default and
stopped automatically at interpreter exit.
"""

import asyncio
import atexit
import concurrent.futures
import functools
import inspect
import logging
import threading
from ..exceptions import ArgumentError, InternalError, LoopStoppingError


class BackgroundTask:
    """A coroutine running as a task inside a BackgroundEventLoop.

    Instances are returned by BackgroundEventLoop.add_task() and should not be
    created directly.

    Args:
        cor (coroutine): The coroutine to run as a task.
        name (str): A name used in log messages.
        loop (BackgroundEventLoop): The loop the task runs in.
        stop_timeout (float): The maximum time stop() waits for the task to
            finish after cancelling it.  None means wait forever.
    """

    def __init__(self, cor, name, loop, stop_timeout=1.0):
        self._name = name
        self._loop = loop
        self._stop_timeout = stop_timeout
        self._logger = logging.getLogger(__name__)
        self.stopped = False

        if not inspect.iscoroutine(cor):
            raise ArgumentError("BackgroundTask requires a coroutine", cor=cor)

        self.task = _create_task_threadsafe(cor, loop)

    @property
    def name(self):
        """A descriptive name for this task."""

        if self._name is not None:
            return self._name

        return str(self.task)

    async def stop(self):
        """Cancel this task and wait for it to finish.

        Calling stop() on a task that already stopped does nothing.

        Raises:
            asyncio.TimeoutError: The task did not finish within stop_timeout.
        """

        if self.stopped:
            return

        self._logger.debug("Stopping task %s", self.name)
        self.task.cancel()

        try:
            outcomes = await asyncio.wait_for(asyncio.gather(self.task, return_exceptions=True),
                                              timeout=self._stop_timeout)
            for outcome in outcomes:
                if isinstance(outcome, Exception):
                    self._logger.error("Task %s ended with error: %s", self.name, outcome)
        finally:
            self.stopped = True
            self._loop.tasks.discard(self)


class BackgroundEventLoop:
    """An asyncio event loop running in a background thread.

    The thread is created on first use, so creating a BackgroundEventLoop is
    cheap.  Once stop() has been called the loop cannot be restarted and any
    attempt to schedule more work raises LoopStoppingError.
    """

    def __init__(self):
        self.loop = None
        self.thread = None
        self.stopping = False
        self.tasks = set()

        self._logger = logging.getLogger(__name__)
        self._loop_check = threading.local()
        self._pool = None
        self._start_lock = threading.Lock()

    def start(self, name='XAPIEventLoop'):
        """Ensure the background loop is running.

        This method is safe to call multiple times.
        """

        if self.stopping:
            raise LoopStoppingError("Cannot perform action while loop is stopping.")

        with self._start_lock:
            if self.loop:
                return

            self._logger.debug("Starting event loop")
            self.loop = asyncio.new_event_loop()
            self.thread = threading.Thread(target=self._loop_thread_main, name=name, daemon=True)
            self.thread.start()

    def stop(self):
        """Stop all tasks and then the loop itself, blocking until done.

        This method may not be called from inside the loop.  Calling it when
        the loop is not running does nothing.
        """

        if not self.loop:
            return

        if self.inside_loop():
            raise InternalError("BackgroundEventLoop.stop() called from inside event loop; "
                                "would have deadlocked.")

        try:
            self.run_coroutine(self._stop_internal())
            self.thread.join()

            if self._pool is not None:
                self._pool.shutdown(wait=True)
        finally:
            self.thread = None
            self.loop = None
            self._pool = None
            self.tasks = set()

    def get_loop(self):
        """Get the asyncio loop, starting it if needed."""

        if not self.loop:
            self.start()

        return self.loop

    def inside_loop(self):
        """Check if the caller is running on the loop's thread."""

        return self._loop_check.__dict__.get('inside_loop', False)

    async def _stop_internal(self):
        if self.stopping:
            return

        self.stopping = True

        tasks = list(self.tasks)
        results = await asyncio.gather(*[task.stop() for task in tasks], return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                self._logger.error("Error stopping task %s: %s", task.name, repr(result))

        # Deferred by one cycle so that the caller blocked on this coroutine resumes
        self.loop.call_soon(self.loop.stop)

    def _loop_thread_main(self):
        asyncio.set_event_loop(self.loop)
        self._loop_check.inside_loop = True

        try:
            self.loop.run_forever()
        except Exception:  # pylint:disable=broad-except;This is a background worker thread.
            self._logger.exception("Exception raised from event loop thread")
        finally:
            self.loop.close()

    def add_task(self, cor, name=None, stop_timeout=1.0):
        """Schedule a long running coroutine on the loop.

        The task is tracked and stopped automatically when the loop stops.
        Safe to call from inside or outside the loop.

        Args:
            cor (coroutine): The coroutine to run.
            name (str): Optional name for debug logging.
            stop_timeout (float): Maximum time to wait for the task to end
                when it is stopped.

        Returns:
            BackgroundTask: The scheduled task.
        """

        if self.stopping:
            raise LoopStoppingError("Cannot add task because loop is stopping")

        self.start()

        task = BackgroundTask(cor, name, self, stop_timeout=stop_timeout)
        self.tasks.add(task)
        self._logger.debug("Added task %s", task.name)
        return task

    def run_coroutine(self, cor, *args, **kwargs):
        """Run a coroutine to completion and return its result.

        Only callable from outside the loop, since blocking inside the loop
        would deadlock.
        """

        if self.stopping:
            raise LoopStoppingError("Could not launch coroutine because loop is shutting down: %s" % cor)

        self.start()

        cor = _instantiate_coroutine(cor, args, kwargs)

        if self.inside_loop():
            cor.close()
            raise InternalError("BackgroundEventLoop.run_coroutine called from inside event loop, "
                                "would have deadlocked.")

        future = self.launch_coroutine(cor)
        return future.result()

    def launch_coroutine(self, cor, *args, **kwargs):
        """Start a coroutine without waiting for it.

        Returns:
            asyncio.Task or concurrent.futures.Future: A task when called from
                inside the loop, otherwise a future the calling thread can
                block on.
        """

        if self.stopping:
            raise LoopStoppingError("Could not launch coroutine because loop is shutting down: %s" % cor)

        self.start()

        cor = _instantiate_coroutine(cor, args, kwargs)

        if self.inside_loop():
            return asyncio.ensure_future(cor, loop=self.loop)

        return asyncio.run_coroutine_threadsafe(cor, loop=self.loop)

    def run_in_executor(self, func, *args, **kwargs):
        """Run a blocking function on a worker thread.

        Returns:
            asyncio.Future: Resolves to the function's return value.
        """

        self.start()

        if self._pool is None:
            self._pool = concurrent.futures.ThreadPoolExecutor(thread_name_prefix="xapi-callback")

        return self.loop.run_in_executor(self._pool, functools.partial(func, *args, **kwargs))

    def create_future(self):
        """Create a future attached to the background loop."""

        return self.get_loop().create_future()


def _create_task_threadsafe(cor, loop):
    asyncio_loop = loop.get_loop()

    if loop.inside_loop():
        return asyncio_loop.create_task(cor)

    async def _task_creator():
        return asyncio_loop.create_task(cor)

    future = asyncio.run_coroutine_threadsafe(_task_creator(), loop=asyncio_loop)
    return future.result()


def _instantiate_coroutine(cor, args, kwargs):
    if inspect.iscoroutinefunction(cor):
        cor = cor(*args, **kwargs)
    elif len(args) > 0 or len(kwargs) > 0:
        raise ArgumentError("You cannot pass arguments if coroutine is already created", args=args, kwargs=kwargs)

    return cor


SharedLoop = BackgroundEventLoop()  # pylint:disable=invalid-name;Module level singleton

# Executor threads must still be alive while the loop shuts down, and atexit
# handlers run in reverse registration order.
import concurrent.futures.thread  # pylint:disable=wrong-import-position,wrong-import-order
atexit.register(SharedLoop.stop)
