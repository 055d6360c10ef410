# -*- coding: utf-8 -*-

from functools import partial
import logging

from .errors import AllRejectedError, UncaughtRejectionError
from .scheduler import get_scheduler
from .util import Thenable, is_thenable

_logger = logging.getLogger(__name__)


class Deferred(Thenable):
    """It represents an operation expected to be completed in the future.

    A Deferred contains a value not yet known when the Deferred is created. It
    allows to set callbacks who will be called as soon as the result is known.

    A Deferred is settled only once: it goes from the "pending" state to the
    "fulfilled" state (with a value), or to the "rejected" state (with a
    reason). The reason can be any object, although exceptions are preferred.

    Callbacks are never called synchronously: the settlement and the
    notification of the callbacks are executed by the scheduler, after the
    current code. Callbacks of a Deferred are always called in the order they
    have been registered.

    The Deferred is not thread-safe: all calls must be done from the thread
    who runs the scheduler.
    """

    PENDING = 'pending'
    FULFILLED = 'fulfilled'
    REJECTED = 'rejected'

    def __init__(self, executor, scheduler=None, _name=None, _previous=None):
        """Constructor of the Deferred.

        The executor is fully executed before the constructor returns.
        If the executor raises an exception, it's caught and the Deferred is
        rejected with this exception.

        Args:
            executor (callable): Takes 2 callable arguments:
                The first one, `resolve()` should be called when the task is
                done and must accept the result's value as its only argument.
                The second, `reject()`, should be called when an error occurs,
                with the reason of the failure.
                Both stay usable after the executor returns.
            scheduler (optional): object with a `schedule(callback)` method.
                Default to the module-level scheduler.
            _name (str): if set, name used when converted to text.
        """
        self._state = self.PENDING
        self._value = None
        if scheduler is None:
            scheduler = get_scheduler()
        self._scheduler = scheduler
        self._name = _name or getattr(executor, '__name__', '???')
        self._previous = _previous

        self._callbacks = []
        self._errbacks = []

        try:
            executor(self._resolve, self._reject)
        except Exception as error:
            self._reject(error)

    @property
    def state(self):
        """str: one of PENDING, FULFILLED or REJECTED."""
        return self._state

    @property
    def value(self):
        """Result or rejection reason; None while the Deferred is pending."""
        return self._value

    def _resolve(self, value):
        if value is self:
            return self._reject(TypeError('%r resolved with itself' % self))
        if is_thenable(value):
            if self._state != self.PENDING:
                return self._ignore('fulfill', value)
            value.then(self._resolve, self._reject)
            return

        def settle():
            if self._state != self.PENDING:
                return self._ignore('fulfill', value)
            self._value = value
            self._state = self.FULFILLED
            self._notify()

        self._scheduler.schedule(settle)

    def _reject(self, reason):
        if reason is self:
            reason = TypeError('%r rejected with itself' % self)
        elif is_thenable(reason):
            if self._state != self.PENDING:
                return self._ignore('reject', reason)
            reason.then(self._resolve, self._reject)
            return

        def settle():
            if self._state != self.PENDING:
                return self._ignore('reject', reason)
            uncaught = not self._errbacks
            self._value = reason
            self._state = self.REJECTED
            self._notify()
            if uncaught:
                raise UncaughtRejectionError(reason)

        self._scheduler.schedule(settle)

    def _ignore(self, action, value):
        _logger.warning('Try to %s %r already settled. New value will be '
                        'ignored: %r', action, self, value)

    def _notify(self):
        if self._state == self.FULFILLED:
            observers, self._errbacks = self._callbacks, []
        elif self._state == self.REJECTED:
            observers, self._callbacks = self._errbacks, []
        else:
            return

        # Observers are removed one by one: if one of them interrupts the
        # loop, the next ones are notified at the next turn.
        try:
            while observers:
                observer = observers.pop(0)
                observer(self._value)
        finally:
            if observers:
                self._scheduler.schedule(self._notify)

    def _subscribe(self, callback=None, errback=None):
        if callback is not None:
            self._callbacks.append(callback)
        if errback is not None:
            self._errbacks.append(errback)

        if self._state != self.PENDING:
            self._scheduler.schedule(self._notify)

    def then(self, on_fulfilled=None, on_rejected=None):
        """Create a new Deferred from callbacks called when this one is settled.

        If the Deferred is fulfilled, the `on_fulfilled` callback will be
        called. Otherwise (the Deferred has been rejected), the `on_rejected`
        callback is called.
        In any case, the callback will define the state of the returned
        Deferred. If the callback raises an exception, the new Deferred is
        rejected. The callback can returns:
        - A value: the new Deferred will be fulfilled with this value.
        - Another Deferred (or any `Thenable`): when settled, its state and
            value will be transferred to the Deferred returned by this method.

        If a callback is not defined, the state of the self Deferred is
        transferred to the new Deferred (the state and the value/reason).

        Args:
            on_fulfilled (callable, optional): This callback will receive the
                result of the original Deferred as argument.
            on_rejected (callable, optional): This callback will receive the
                rejection reason of the original Deferred as argument.
        Returns:
            Deferred<*>: new Deferred depending of self.
        """

        def chained_executor(resolve, reject):

            def callback(result):
                if on_fulfilled is None:
                    return resolve(result)
                try:
                    new_result = on_fulfilled(result)
                except Exception as error:
                    return reject(error)
                resolve(new_result)

            def errback(reason):
                if on_rejected is None:
                    return reject(reason)
                try:
                    new_result = on_rejected(reason)
                except Exception as error:
                    return reject(error)
                resolve(new_result)

            self._subscribe(callback, errback)

        if not on_rejected:
            name = '%s' % getattr(on_fulfilled, '__name__', '???')
        elif not on_fulfilled:
            name = '<None, %s>' % getattr(on_rejected, '__name__', '???')
        else:
            name = '<%s, %s>' % (getattr(on_fulfilled, '__name__', '???'),
                                 getattr(on_rejected, '__name__', '???'))
        return Deferred(chained_executor, scheduler=self._scheduler,
                        _name=name, _previous=self)

    def catch(self, on_rejected=None):
        """Create a new Deferred with a callback called when an error occurs.

        Alias of `self.then(None, on_rejected)`

        Args:
            on_rejected (callable, optional): Will be called with the
                rejection reason if `self` is rejected.
        returns:
            Deferred<*>: new Deferred chained to `self`. If `self` is
                fulfilled, the value will be the same as `self`. Otherwise,
                the value returned by the `on_rejected()` callback.
        """
        return self.then(None, on_rejected)

    def finally_(self, on_settled=None):
        """Create a new Deferred with a callback called in all cases.

        `on_settled()` is called without argument when `self` is settled, and
        its returned value is ignored: the new Deferred is settled with the
        same state and value as `self`. If `on_settled()` raises an
        exception, the new Deferred is rejected with this exception.

        Args:
            on_settled (callable, optional)
        Returns:
            Deferred<*>: new Deferred chained to `self`.
        """

        def finally_executor(resolve, reject):

            def forward(settle, value):
                if on_settled is not None:
                    try:
                        on_settled()
                    except Exception as error:
                        return reject(error)
                settle(value)

            self._subscribe(partial(forward, resolve), partial(forward, reject))

        name = 'FINALLY %s' % getattr(on_settled, '__name__', '???')
        return Deferred(finally_executor, scheduler=self._scheduler,
                        _name=name, _previous=self)

    def safeguard(self):
        """Catch all errors and log them with the most details possible.

        This method is aimed to protect the program from uncaught rejected
        Deferred. If no error handler has been set (via then() or catch()),
        the rejection is reported as an uncaught rejection to the scheduler.
        Calling `safeguard()` after all chains are set will catch these
        errors, and log them as ERROR with the maximum of details possible.
        """
        def guard(reason):
            if isinstance(reason, BaseException):
                _logger.error('[SAFEGUARD] %r', self,
                              exc_info=(type(reason), reason,
                                        reason.__traceback__))
            else:
                _logger.error('[SAFEGUARD] %r rejected with %r', self, reason)

        self._subscribe(errback=guard)

    def __repr__(self):
        return 'Deferred(%s)' % self._inner_print()

    def _inner_print(self):
        if self._state == self.REJECTED:
            state = 'R'
        elif self._state == self.FULFILLED:
            state = 'F'
        else:
            state = 'P'

        if self._previous:
            return '%s -> %s %s' % (self._previous._inner_print(), self._name,
                                    state)
        return '%s %s' % (self._name, state)

    @classmethod
    def resolve(cls, value, scheduler=None):
        """Create a Deferred who resolves the selected value.

        Args:
            value: result of the Deferred. If it's a thenable, the new
                Deferred will follow its state.
            scheduler (optional)
        Returns:
            Deferred: new Deferred, fulfilled with the value passed in
                parameter at the next turn.
        """
        return cls(lambda ok, error: ok(value), scheduler=scheduler,
                   _name='RESOLVE')

    @classmethod
    def reject(cls, reason, scheduler=None):
        """Create a Deferred rejected for the reason specified.

        Args:
            reason: rejection reason set to the Deferred.
            scheduler (optional)
        Returns:
            Deferred: new Deferred, rejected at the next turn.
        """
        return cls(lambda ok, error: error(reason), scheduler=scheduler,
                   _name='REJECT')

    @classmethod
    def all(cls, deferreds, scheduler=None):
        """Create a Deferred who wait a list of deferreds to be all fulfilled.

        The resulting Deferred resolves when all the deferreds in the list
        are fulfilled, and returns a list of all the resulting values, keeping
        the order of the deferred list.
        If a Deferred is rejected, then the resulting Deferred is rejected
        with the same reason, and all results from others deferreds are
        ignored.

        Args:
            deferreds (list of Deferred)
            scheduler (optional)
        Returns:
            Deferred<list>: resulting Deferred, fulfilled when all deferreds
                are fulfilled, or rejected when one of them has been rejected.
        """
        deferreds = list(deferreds)
        if not deferreds:
            return cls.resolve([], scheduler=scheduler)

        has_error = [False]
        remaining_tasks = [len(deferreds)]
        results = [None] * len(deferreds)

        def executor(resolve, reject):
            def resolve_one(index, value):
                if has_error[0]:
                    return
                results[index] = value
                remaining_tasks[0] -= 1
                if remaining_tasks[0] == 0:
                    resolve(results)

            def reject_one(reason):
                if has_error[0]:
                    return
                has_error[0] = True
                reject(reason)

            for index, d in enumerate(deferreds):
                d.then(partial(resolve_one, index), reject_one)

        return cls(executor, scheduler=scheduler, _name='ALL')

    @classmethod
    def all_settled(cls, deferreds, scheduler=None):
        """Create a Deferred who wait a list of deferreds to be all settled.

        The resulting Deferred is never rejected. Its value is a list of
        dicts, in the order of the deferred list, describing the outcome of
        each Deferred:
        - {'status': 'fulfilled', 'value': value}
        - {'status': 'rejected', 'reason': reason}

        Args:
            deferreds (list of Deferred)
            scheduler (optional)
        Returns:
            Deferred<list of dict>
        """
        deferreds = list(deferreds)
        if not deferreds:
            return cls.resolve([], scheduler=scheduler)

        remaining_tasks = [len(deferreds)]
        results = [None] * len(deferreds)

        def executor(resolve, reject):
            def settle_one(index, outcome):
                results[index] = outcome
                remaining_tasks[0] -= 1
                if remaining_tasks[0] == 0:
                    resolve(results)

            def on_fulfilled(index, value):
                settle_one(index, {'status': cls.FULFILLED, 'value': value})

            def on_rejected(index, reason):
                settle_one(index, {'status': cls.REJECTED, 'reason': reason})

            for index, d in enumerate(deferreds):
                d.then(partial(on_fulfilled, index),
                       partial(on_rejected, index))

        return cls(executor, scheduler=scheduler, _name='ALL_SETTLED')

    @classmethod
    def race(cls, deferreds, scheduler=None):
        """Settle a new Deferred like the fastest of the deferreds.

        The resulting Deferred will be settled as soon as the one the
        deferreds is settled. Result value or rejection reason of the
        finished Deferred are transmitted.
        All other results will be ignored.

        Args:
            deferreds (list): list of deferreds to run at the same time.
            scheduler (optional)
        Returns:
            Deferred
        Raises:
            ValueError: If the deferred list is empty.
        """
        deferreds = list(deferreds)
        if not deferreds:
            raise ValueError('Empty deferred list in Deferred.race()')

        is_settled = [False]

        def executor(resolve, reject):
            def settle_once(settle, value):
                if is_settled[0]:
                    return
                is_settled[0] = True
                settle(value)

            for d in deferreds:
                d.then(partial(settle_once, resolve),
                       partial(settle_once, reject))

        return cls(executor, scheduler=scheduler, _name='RACE')

    @classmethod
    def any(cls, deferreds, scheduler=None):
        """Fulfill a new Deferred with the first fulfilled Deferred.

        Rejections are ignored, unless all deferreds are rejected: then the
        resulting Deferred is rejected with an `AllRejectedError`.

        Args:
            deferreds (list): list of deferreds to run at the same time.
            scheduler (optional)
        Returns:
            Deferred
        """
        deferreds = list(deferreds)
        if not deferreds:
            return cls.reject(AllRejectedError(), scheduler=scheduler)

        is_resolved = [False]
        remaining_tasks = [len(deferreds)]

        def executor(resolve, reject):
            def resolve_once(value):
                if is_resolved[0]:
                    return
                is_resolved[0] = True
                resolve(value)

            def reject_one(_reason):
                remaining_tasks[0] -= 1
                if remaining_tasks[0] == 0:
                    reject(AllRejectedError())

            for d in deferreds:
                d.then(resolve_once, reject_one)

        return cls(executor, scheduler=scheduler, _name='ANY')
