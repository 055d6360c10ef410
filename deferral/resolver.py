# -*- coding: utf-8 -*-

from .deferred import Deferred


class Resolver(object):
    """Creator side of an asynchronous task.

    A Resolver is the "creator" side of an async task, whereas a Deferred
    represents the asynchronous value from the "consumer" side. It's useful
    when the code settling the value is not the code creating the Deferred.

    Attributes:
        deferred (Deferred): the Deferred associated to the Resolver.
        resolve (function): fulfill the Deferred (or adopt a thenable).
        reject (function): reject the Deferred.
    """

    def __init__(self, scheduler=None, name=None):
        self.deferred = Deferred(self._executor, scheduler=scheduler,
                                 _name=name or 'RESOLVER')

    def _executor(self, resolve, reject):
        self.resolve = resolve
        self.reject = reject
