# -*- coding: utf-8 -*-


class RejectionError(Exception):
    """Exception wrapping the reason of a rejected Deferred.

    Rejection reasons can be any value. This class is used when such a reason
    must travel as an exception (raised into a generator, or into the
    scheduler).

    Attributes:
        reason: the original rejection reason, not modified.
    """

    def __init__(self, reason, *args):
        Exception.__init__(self, reason, *args)
        self.reason = reason


class UncaughtRejectionError(RejectionError):
    """A Deferred has been rejected while nobody observes its rejection."""

    def __str__(self):
        return 'Uncaught rejection in deferred: %r' % (self.reason,)


class AllRejectedError(RejectionError):
    """All the deferreds passed to `Deferred.any()` have been rejected."""

    MESSAGE = 'All deferreds were rejected'

    def __init__(self):
        RejectionError.__init__(self, self.MESSAGE)

    def __str__(self):
        return self.MESSAGE
