# -*- coding: utf-8 -*-

from .__version__ import __version__  # noqa

import asyncio
import logging

from .common import config
from .common import log
from .decorators import wrap_deferred
from .deferred import Deferred
from .errors import AllRejectedError, RejectionError, UncaughtRejectionError
from .reduce_coroutine import reduce_coroutine
from .resolver import Resolver
from .scheduler import (EventLoopScheduler, TurnQueue, get_scheduler,
                        set_scheduler)
from .util import Thenable, is_thenable

__all__ = ['AllRejectedError', 'Deferred', 'EventLoopScheduler',
           'RejectionError', 'Resolver', 'Thenable', 'TurnQueue',
           'UncaughtRejectionError', 'get_scheduler', 'is_thenable',
           'reduce_coroutine', 'set_scheduler', 'wrap_deferred']


def main():
    """Small demo: race two timers on an asyncio loop."""

    with log.Context():
        config.load()
        log.set_debug_mode(config.get('debug_mode'))
        log.set_logs_level(config.get('log_levels'))

        logger = logging.getLogger(__name__)

        async def run():
            scheduler = EventLoopScheduler()
            loop = scheduler.loop

            def after(delay, value):
                def executor(resolve, reject):
                    loop.call_later(delay, resolve, value)
                return Deferred(executor, scheduler=scheduler,
                                _name='AFTER %ss' % delay)

            race = Deferred.race([after(0.1, 'fast'), after(0.2, 'slow')],
                                 scheduler=scheduler)
            logger.info('Race winner: %s', await scheduler.to_future(race))
            logger.debug('%r', race)

        asyncio.run(run())


if __name__ == "__main__":
    main()
