# -*- coding: utf-8 -*-
"""Scheduling services used to defer the Deferred's callbacks.

A scheduler is any object with a `schedule(callback)` method. The callback
must be called later, after the current synchronous execution, and the
callbacks scheduled must be executed in the order of their registration.

The module holds a default scheduler, used by all Deferred created without an
explicit one. By default it's a `TurnQueue`, who must be drained by the
application (or the tests) with `run_until_idle()`.
"""

import asyncio
from collections import deque
import logging

from .common import config
from .errors import RejectionError, UncaughtRejectionError

_logger = logging.getLogger(__name__)


class TurnQueue(object):
    """FIFO of callbacks, executed on demand.

    Each callback is a "turn". Callbacks scheduled during a turn are appended
    at the end of the queue, and are executed by the same call to
    `run_until_idle()`.

    Uncaught rejections raised by a turn are handled following the
    `unhandled` policy:
    - 'raise': the error is logged, the queue is drained, then the first
        uncaught rejection is raised by `run_until_idle()`.
    - 'log': the error is logged, and the execution continues.
    """

    RAISE = 'raise'
    LOG = 'log'

    def __init__(self, unhandled=None):
        """
        Args:
            unhandled (str, optional): policy for uncaught rejections; one of
                'raise' or 'log'. Default to the 'unhandled_rejections'
                config entry.
        """
        if unhandled is None:
            unhandled = config.get('unhandled_rejections')
        if unhandled not in (self.RAISE, self.LOG):
            raise ValueError('Invalid unhandled rejection policy: %r'
                             % unhandled)
        self.unhandled = unhandled
        self._queue = deque()

    def __len__(self):
        return len(self._queue)

    def schedule(self, callback):
        """Add a callback at the end of the queue.

        Args:
            callback (callable): called without argument.
        """
        self._queue.append(callback)

    def run_until_idle(self):
        """Execute all callbacks until the queue is empty.

        Returns:
            int: number of callbacks executed.
        Raises:
            UncaughtRejectionError: if the policy is 'raise' and a Deferred has
                been rejected without rejection handler.
        """
        nb_turns = 0
        first_error = None

        while self._queue:
            callback = self._queue.popleft()
            nb_turns += 1
            try:
                callback()
            except UncaughtRejectionError as error:
                _logger.error('%s', error, exc_info=True)
                if self.unhandled == self.RAISE and first_error is None:
                    first_error = error

        if first_error is not None:
            raise first_error
        return nb_turns


class EventLoopScheduler(object):
    """Scheduler using an asyncio event loop.

    Callbacks are executed by the loop, with `call_soon()`. Uncaught
    rejections are reported to the loop's exception handler.
    """

    def __init__(self, loop=None):
        """
        Args:
            loop (asyncio.AbstractEventLoop, optional): default to the
                running event loop.
        Raises:
            RuntimeError: if no loop is given and there is no running loop.
        """
        if loop is None:
            loop = asyncio.get_running_loop()
        self.loop = loop

    def schedule(self, callback):
        self.loop.call_soon(callback)

    def to_future(self, deferred):
        """Bridge a Deferred to an asyncio future of the loop.

        The future is set when the Deferred is settled. A rejection reason
        that is not an exception is wrapped into a `RejectionError`.
        If the future is cancelled, the outcome of the Deferred is dropped.

        Args:
            deferred (Deferred): deferred to wait for.
        Returns:
            asyncio.Future: future usable with `await`.
        """
        future = self.loop.create_future()

        def on_fulfilled(value):
            if not future.done():
                future.set_result(value)

        def on_rejected(reason):
            if not isinstance(reason, BaseException):
                reason = RejectionError(reason)
            if not future.done():
                future.set_exception(reason)

        deferred.then(on_fulfilled, on_rejected)
        return future

_scheduler = None


def get_scheduler():
    """Returns the default scheduler, creating it if needed."""
    global _scheduler

    if _scheduler is None:
        _scheduler = TurnQueue()
    return _scheduler


def set_scheduler(scheduler):
    """Replace the default scheduler.

    Args:
        scheduler: object with a `schedule(callback)` method. If None, a new
            `TurnQueue` will be created at the next use.
    Returns:
        the previous default scheduler (can be None).
    """
    global _scheduler

    previous = _scheduler
    _scheduler = scheduler
    return previous
