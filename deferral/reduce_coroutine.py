# -*- coding: utf-8 -*-

from .errors import RejectionError
from .resolver import Resolver
from .util import is_thenable


def reduce_coroutine(safeguard=False):
    """Decorator who converts a coroutine of deferreds into a single Deferred.

    The greatest interest is the ability to write a function in an
    synchronous-like style, using many asynchronous Deferreds.
    Whatever is the number of Deferreds used, the result will always be an
    unique Deferred wrapping the whole process.

    Each Deferred yielded is awaited, then its value is sent back to the
    generator. If it's rejected, the reason is raised inside the generator
    (wrapped in a `RejectionError` if it's not an exception).
    The result is the value returned by the generator. If it returns nothing,
    the last value sent to the generator is used. Yielding a non-thenable
    value stops the generator, and the value is used as result.

    Args:
        safeguard (boolean): if true, use `Deferred.safeguard()` on the
            resulting Deferred.
    """

    def decorator(func):
        def wrapper(*args, **kwargs):
            """
            Args:
                *args
                **kwargs
            Returns:
                Deferred<*>
            """
            resolver = Resolver(name='COROUTINE %s' % func.__name__)
            if safeguard:
                resolver.deferred.safeguard()

            try:
                # Create generator; Initialization phase
                gen = func(*args, **kwargs)
            except Exception as error:
                resolver.reject(error)
                return resolver.deferred

            def _call_next_or_set_result(value):
                if is_thenable(value):
                    value.then(iter_next, iter_error)
                else:
                    gen.close()
                    resolver.resolve(value)

            def iter_next(sent_value):
                try:
                    next_value = gen.send(sent_value)
                except StopIteration as stop:
                    if stop.value is None:
                        return resolver.resolve(sent_value)
                    return resolver.resolve(stop.value)
                except Exception as error:
                    return resolver.reject(error)
                _call_next_or_set_result(next_value)

            def iter_error(reason):
                if isinstance(reason, BaseException):
                    error = reason
                else:
                    error = RejectionError(reason)
                try:
                    next_value = gen.throw(error)
                except StopIteration as stop:
                    return resolver.resolve(stop.value)
                except Exception as raised_error:
                    if raised_error is error:
                        # Not caught by the generator: keep the original.
                        return resolver.reject(reason)
                    return resolver.reject(raised_error)
                _call_next_or_set_result(next_value)

            # Start and resolve loop.
            try:
                first_value = next(gen)
            except StopIteration as stop:
                resolver.resolve(stop.value)
                return resolver.deferred
            except Exception as error:
                resolver.reject(error)
                return resolver.deferred
            _call_next_or_set_result(first_value)

            return resolver.deferred

        return wrapper
    return decorator
