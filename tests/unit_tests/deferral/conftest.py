# -*- coding: utf-8 -*-

import pytest

from deferral import TurnQueue, set_scheduler


@pytest.fixture(autouse=True)
def turn_queue(request):
    """Install a new TurnQueue as default scheduler, for the test duration.

    Nothing is executed until the test calls ``run_until_idle()``.

    Returns:
        TurnQueue: the scheduler used by all Deferred created by the test.
    """
    queue = TurnQueue(unhandled=TurnQueue.RAISE)
    previous = set_scheduler(queue)

    def restore():
        set_scheduler(previous)

    request.addfinalizer(restore)
    return queue
