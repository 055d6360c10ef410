# -*- coding: utf-8 -*-

import pytest

from deferral import (Deferred, Resolver, Thenable, UncaughtRejectionError,
                      TurnQueue)


class Err(Exception):
    pass


class TestDeferred(object):

    def test_executor_called_synchronously(self):
        calls = []

        def executor(resolve, reject):
            calls.append('executor')

        Deferred(executor)
        assert calls == ['executor']

    def test_resolve_is_deferred_to_next_turn(self, turn_queue):
        """The settlement never happens during the call to resolve()."""
        d = Deferred(lambda ok, error: ok(3))

        assert d.state == Deferred.PENDING
        assert d.value is None

        turn_queue.run_until_idle()
        assert d.state == Deferred.FULFILLED
        assert d.value == 3

    def test_reject_is_deferred_to_next_turn(self, turn_queue):
        err = Err()
        d = Deferred(lambda ok, error: error(err))
        d.catch(lambda _: None)

        assert d.state == Deferred.PENDING
        turn_queue.run_until_idle()
        assert d.state == Deferred.REJECTED
        assert d.value is err

    def test_executor_raising_error(self, turn_queue):
        """Make a Deferred with an executor raising an error."""
        def executor(resolve, reject):
            raise Err()

        reasons = []
        d = Deferred(executor)
        d.catch(reasons.append)
        turn_queue.run_until_idle()

        assert d.state == Deferred.REJECTED
        assert len(reasons) == 1
        assert isinstance(reasons[0], Err)

    def test_settled_only_once(self, turn_queue, caplog):
        """Subsequent calls to resolve() and reject() have no effect."""
        resolver = Resolver()
        resolver.resolve(1)
        resolver.resolve(2)
        resolver.reject(Err())
        turn_queue.run_until_idle()

        assert resolver.deferred.state == Deferred.FULFILLED
        assert resolver.deferred.value == 1

        resolver.reject(Err())
        resolver.resolve(3)
        turn_queue.run_until_idle()

        assert resolver.deferred.state == Deferred.FULFILLED
        assert resolver.deferred.value == 1
        assert 'already settled' in caplog.text

    def test_resolve_and_reject_are_stable_references(self, turn_queue):
        entry_points = []

        def executor(resolve, reject):
            entry_points.append((resolve, reject))

        d = Deferred(executor)
        resolve, reject = entry_points[0]

        # Still usable after the end of the executor.
        resolve('later')
        turn_queue.run_until_idle()
        assert d.value == 'later'

    def test_scheduler_given_explicitly(self, turn_queue):
        queue = TurnQueue()
        d = Deferred.resolve(1, scheduler=queue)

        assert turn_queue.run_until_idle() == 0
        assert d.state == Deferred.PENDING
        queue.run_until_idle()
        assert d.value == 1


class TestThenMethod(object):

    def test_then_never_calls_synchronously(self, turn_queue):
        """Chain a callback on an already fulfilled Deferred."""
        d = Deferred.resolve(5)
        turn_queue.run_until_idle()

        results = []
        d.then(results.append)
        assert results == []

        turn_queue.run_until_idle()
        assert results == [5]

    def test_then_on_pending_deferred(self, turn_queue):
        resolver = Resolver()
        results = []
        resolver.deferred.then(results.append)

        turn_queue.run_until_idle()
        assert results == []

        resolver.resolve(23)
        turn_queue.run_until_idle()
        assert results == [23]

    def test_callbacks_in_registration_order(self, turn_queue):
        """Observers registered before and after settlement keep their order.
        """
        resolver = Resolver()
        calls = []
        for i in range(3):
            resolver.deferred.then(lambda v, i=i: calls.append(i))

        resolver.resolve('value')
        turn_queue.run_until_idle()
        assert calls == [0, 1, 2]

        for i in range(3, 6):
            resolver.deferred.then(lambda v, i=i: calls.append(i))
        turn_queue.run_until_idle()
        assert calls == [0, 1, 2, 3, 4, 5]

    def test_interrupted_notification_resumes_next_turn(self, turn_queue):
        """Observers after an interrupting one are kept for the next turn."""
        class Interrupt(BaseException):
            pass

        def interrupting(value):
            raise Interrupt()

        d = Deferred.resolve(1)
        turn_queue.run_until_idle()

        calls = []
        d.then(interrupting)
        d.then(calls.append)
        with pytest.raises(Interrupt):
            turn_queue.run_until_idle()
        assert calls == []

        turn_queue.run_until_idle()
        assert calls == [1]

    def test_same_handler_registered_twice(self, turn_queue):
        """Each registration is called once; no double or skipped call."""
        d = Deferred.resolve('x')
        turn_queue.run_until_idle()

        calls = []

        def on_error(reason):
            calls.append('error')

        d.then(calls.append, on_error)
        d.then(calls.append, on_error)
        turn_queue.run_until_idle()
        turn_queue.run_until_idle()

        assert calls == ['x', 'x']

    def test_only_success_callback_on_fulfilled(self, turn_queue):
        calls = []
        d = Deferred.resolve(654)
        d2 = d.then(lambda v: calls.append(('ok', v)) or v * 3,
                    lambda e: calls.append(('error', e)))
        turn_queue.run_until_idle()

        assert calls == [('ok', 654)]
        assert d2.value == 1962

    def test_only_error_callback_on_rejected(self, turn_queue):
        err = Err()
        calls = []
        d = Deferred.reject(err)
        d2 = d.then(lambda v: calls.append(('ok', v)),
                    lambda e: calls.append(('error', e)) or 38)
        turn_queue.run_until_idle()

        assert calls == [('error', err)]
        assert d2.state == Deferred.FULFILLED
        assert d2.value == 38

    def test_then_returns_value(self, turn_queue):
        d = Deferred.resolve(23).then(lambda v: v * 2)
        turn_queue.run_until_idle()
        assert d.value == 46

    def test_callback_raising_rejects_next(self, turn_queue):
        def callback(value):
            raise Err()

        reasons = []
        Deferred.resolve(1).then(callback).catch(reasons.append)
        turn_queue.run_until_idle()

        assert len(reasons) == 1
        assert isinstance(reasons[0], Err)

    def test_errback_raising_rejects_next(self, turn_queue):
        def errback(reason):
            raise ValueError()

        reasons = []
        Deferred.reject(Err()).catch(errback).catch(reasons.append)
        turn_queue.run_until_idle()

        assert len(reasons) == 1
        assert isinstance(reasons[0], ValueError)

    def test_error_callback_only_on_fulfilled(self, turn_queue):
        """Chain a fulfilled Deferred with only the error callback."""
        def on_error(err):
            raise Exception('This should never be called!')

        d = Deferred.resolve(185).then(None, on_error)
        turn_queue.run_until_idle()
        assert d.value == 185

    def test_reason_passes_through_without_errback(self, turn_queue):
        err = Err()
        reasons = []
        Deferred.reject(err) \
            .then(lambda v: 'not called') \
            .then(lambda v: 'not called either') \
            .catch(reasons.append)
        turn_queue.run_until_idle()

        assert reasons == [err]

    def test_catch_without_handler_is_transparent(self, turn_queue):
        results = []
        Deferred.resolve('v') \
            .then(lambda x: x) \
            .catch() \
            .then(results.append)
        turn_queue.run_until_idle()

        assert results == ['v']


class TestFlattening(object):

    def test_resolve_with_deferred(self, turn_queue):
        results = []
        d = Deferred(lambda ok, error: ok(Deferred.resolve('inner')))
        d.then(results.append)
        turn_queue.run_until_idle()

        assert results == ['inner']
        assert d.value == 'inner'

    def test_nested_deferreds(self, turn_queue):
        d = Deferred.resolve('deep')
        for _ in range(10):
            d = Deferred.resolve(d)
        turn_queue.run_until_idle()

        assert d.state == Deferred.FULFILLED
        assert d.value == 'deep'

    def test_then_with_deferred_factory(self, turn_queue):
        """A callback returning a Deferred is flattened."""
        def factory(value):
            return Deferred.resolve(value * value)

        d = Deferred.resolve(6).then(factory)
        turn_queue.run_until_idle()
        assert d.value == 36

    def test_nested_deferred_then_catch(self, turn_queue):
        results = []
        second = Deferred.resolve('pr2')
        resolver = Resolver()

        def first_step(value):
            results.append(value)
            return second

        resolver.deferred.then(first_step).catch().then(results.append)
        resolver.resolve(Deferred.resolve('pr1'))
        turn_queue.run_until_idle()

        assert results == ['pr1', 'pr2']

    def test_resolve_with_rejected_deferred(self, turn_queue):
        err = Err()
        reasons = []
        Deferred.resolve(Deferred.reject(err)).catch(reasons.append)
        turn_queue.run_until_idle()

        assert reasons == [err]

    def test_errback_returning_deferred(self, turn_queue):
        """A rejection handler returning a Deferred is flattened too."""
        results = []
        Deferred.reject(Err()) \
            .catch(lambda e: Deferred.resolve('fallback')) \
            .then(results.append)
        turn_queue.run_until_idle()

        assert results == ['fallback']

    def test_errback_returning_rejected_deferred(self, turn_queue):
        other = Err('other')
        reasons = []
        Deferred.reject(Err()) \
            .catch(lambda e: Deferred.reject(other)) \
            .catch(reasons.append)
        turn_queue.run_until_idle()

        assert reasons == [other]

    def test_reject_with_deferred_adopts_it(self, turn_queue):
        results = []
        d = Deferred(lambda ok, error: error(Deferred.resolve('x')))
        d.then(results.append)
        turn_queue.run_until_idle()

        assert results == ['x']

    def test_resolve_with_itself(self, turn_queue):
        resolver = Resolver()
        reasons = []
        resolver.deferred.catch(reasons.append)

        resolver.resolve(resolver.deferred)
        turn_queue.run_until_idle()

        assert len(reasons) == 1
        assert isinstance(reasons[0], TypeError)

    def test_adopt_registered_thenable(self, turn_queue):
        class Foreign(object):
            def __init__(self, value):
                self.value = value

            def then(self, on_fulfilled=None, on_rejected=None):
                on_fulfilled(self.value)

        Thenable.register(Foreign)

        d = Deferred.resolve(Foreign(4))
        turn_queue.run_until_idle()
        assert d.value == 4

    def test_object_with_then_is_not_adopted(self, turn_queue):
        """Only Thenable implementations are adopted."""
        class NotThenable(object):
            def then(self, on_fulfilled=None, on_rejected=None):
                raise AssertionError('This should never be called!')

        value = NotThenable()
        d = Deferred.resolve(value)
        turn_queue.run_until_idle()
        assert d.value is value


class TestFinally(object):

    def test_finally_forwards_value(self, turn_queue):
        calls = []
        results = []

        def on_settled():
            calls.append('finally')
            return 'ok'

        Deferred.resolve('result').finally_(on_settled).then(results.append)
        turn_queue.run_until_idle()

        assert calls == ['finally']
        assert results == ['result']

    def test_finally_forwards_reason(self, turn_queue):
        err = Err()
        calls = []
        reasons = []

        Deferred.reject(err) \
            .finally_(lambda: calls.append('finally')) \
            .catch(reasons.append)
        turn_queue.run_until_idle()

        assert calls == ['finally']
        assert reasons == [err]

    def test_finally_raising(self, turn_queue):
        def on_settled():
            raise Err()

        reasons = []
        Deferred.resolve(1).finally_(on_settled).catch(reasons.append)
        turn_queue.run_until_idle()

        assert len(reasons) == 1
        assert isinstance(reasons[0], Err)

    def test_finally_without_callback(self, turn_queue):
        d = Deferred.resolve(1).finally_()
        turn_queue.run_until_idle()
        assert d.value == 1


class TestUncaughtRejection(object):

    def test_rejection_without_errback(self, turn_queue):
        err = Err()
        Deferred.reject(err)

        with pytest.raises(UncaughtRejectionError) as exc_info:
            turn_queue.run_until_idle()
        assert exc_info.value.reason is err

    def test_errback_registered_before_the_turn(self, turn_queue):
        """An errback added after reject(), but before its turn, is enough."""
        reasons = []
        d = Deferred.reject('e')
        d.catch(reasons.append)
        turn_queue.run_until_idle()

        assert reasons == ['e']

    def test_end_of_chain_is_uncaught(self, turn_queue):
        err = Err()
        Deferred.reject(err).then(lambda v: v)

        with pytest.raises(UncaughtRejectionError) as exc_info:
            turn_queue.run_until_idle()
        assert exc_info.value.reason is err

    def test_late_errback_still_called(self, turn_queue):
        err = Err()
        d = Deferred.reject(err)
        with pytest.raises(UncaughtRejectionError):
            turn_queue.run_until_idle()

        assert d.state == Deferred.REJECTED
        reasons = []
        d.catch(reasons.append)
        turn_queue.run_until_idle()
        assert reasons == [err]

    def test_adopt_after_settlement_is_ignored(self, turn_queue, caplog):
        """A rejected deferred given to a settled one stays uncaught."""
        resolver = Resolver()
        resolver.resolve(1)
        turn_queue.run_until_idle()

        resolver.resolve(Deferred.reject('lost'))
        with pytest.raises(UncaughtRejectionError) as exc_info:
            turn_queue.run_until_idle()

        assert exc_info.value.reason == 'lost'
        assert resolver.deferred.value == 1
        assert 'already settled' in caplog.text

    def test_reject_with_deferred_after_settlement(self, turn_queue, caplog):
        resolver = Resolver()
        resolver.reject('first')
        resolver.deferred.catch(lambda reason: None)
        turn_queue.run_until_idle()

        resolver.reject(Deferred.resolve('second'))
        turn_queue.run_until_idle()

        assert resolver.deferred.state == Deferred.REJECTED
        assert resolver.deferred.value == 'first'
        assert 'already settled' in caplog.text

    def test_log_policy(self, caplog):
        queue = TurnQueue(unhandled=TurnQueue.LOG)
        Deferred.reject('lost', scheduler=queue)

        queue.run_until_idle()
        assert 'Uncaught rejection' in caplog.text


class TestSafeguard(object):

    def test_safeguard_logs_exception(self, turn_queue, caplog):
        def in_deferred(ok, error):
            raise Err('ERROR')

        d = Deferred(in_deferred)
        d.then(lambda value: None)
        d.safeguard()

        # The chained Deferred is rejected too, and not guarded.
        with pytest.raises(UncaughtRejectionError):
            turn_queue.run_until_idle()

        assert '[SAFEGUARD]' in caplog.text
        assert 'Err: ERROR' in caplog.text

    def test_safeguard_logs_non_exception(self, turn_queue, caplog):
        Deferred.reject('plain reason').safeguard()
        turn_queue.run_until_idle()

        assert '[SAFEGUARD]' in caplog.text
        assert 'plain reason' in caplog.text


class TestRepr(object):

    def test_repr_chain(self, turn_queue):
        def double(value):
            return value * 2

        d = Deferred.resolve(1).then(double)
        assert repr(d) == 'Deferred(RESOLVE P -> double P)'

        turn_queue.run_until_idle()
        assert repr(d) == 'Deferred(RESOLVE F -> double F)'

    def test_repr_rejected(self, turn_queue):
        d = Deferred.reject(Err())
        d.catch(lambda e: None)
        turn_queue.run_until_idle()
        assert repr(d) == 'Deferred(REJECT R)'
