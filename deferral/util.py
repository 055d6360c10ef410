# -*- coding: utf-8 -*-

import abc


class Thenable(abc.ABC):
    """Marker interface of the objects who can be adopted by a Deferred.

    A thenable exposes a `then(on_fulfilled, on_rejected)` method. When a
    Deferred is resolved with a thenable, it follows the outcome of the
    thenable instead of keeping it as a value.

    Foreign classes can be declared as thenable with `Thenable.register()`.
    """

    @abc.abstractmethod
    def then(self, on_fulfilled=None, on_rejected=None):
        pass


def is_thenable(value):
    """Check if an object can be chained, like a Deferred, or is a "result".

    The deferral module uses this function to differentiate "chainable"
    objects and direct return values, when using a callback who can returns
    both.

    Returns:
        boolean: True if the value implements the `Thenable` interface.
            False if not.
    """
    return isinstance(value, Thenable)
