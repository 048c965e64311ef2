"""
A single-slot store for the most recent fault.

Components running on background threads report errors here rather than raising them across thread
boundaries. Consumers poll the tracker to find out if something went wrong.
"""
import logging
import threading
import traceback

from dcsbios.support.mixins import CommonEqualityMixin, ReprMixin

logger = logging.getLogger(__name__)


class Fault(CommonEqualityMixin, ReprMixin):
    """
    Describes a captured fault.
    :param kind: the name of the exception class
    :param message: the exception message
    :param origin: the component that reported the fault, e.g. 'startup' or 'receive'
    :param exception: the original exception
    :param trace: the formatted traceback, if one was available
    """

    def __init__(self, kind, message, origin=None, exception=None, trace=None):
        self.kind = kind
        self.message = message
        self.origin = origin
        self.exception = exception
        self.trace = trace

    @classmethod
    def from_exception(cls, error: BaseException, origin=None):
        trace = None
        if error.__traceback__ is not None:
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return cls(type(error).__name__, str(error), origin, error, trace)

    def __str__(self):
        where = " in %s" % self.origin if self.origin else ""
        return "%s%s: %s" % (self.kind, where, self.message)


class FaultTracker:
    """
    Holds at most one fault. Setting a fault overwrites any previous one; there is no history.
    All methods may be called from any thread, and none of them raise.
    """

    def __init__(self, log=logger):
        self._lock = threading.Lock()
        self._fault = None
        self.logger = log

    def set_fault(self, error, origin=None):
        """
        Records a fault from an exception, replacing the current one.
        :param error: the exception to record. None is ignored.
        :param origin: names the component reporting the fault
        """
        if error is None:
            return
        try:
            fault = Fault.from_exception(error, origin)
            with self._lock:
                self._fault = fault
            self.logger.error("fault recorded: %s", fault, exc_info=error)
        except Exception:   # the tracker must never become a new source of failure
            pass

    def take_fault(self):
        """ returns the current fault and clears it. """
        with self._lock:
            fault = self._fault
            self._fault = None
        return fault

    def peek_fault(self):
        """ returns the current fault without clearing it. """
        with self._lock:
            return self._fault

    def has_fault(self) -> bool:
        with self._lock:
            return self._fault is not None

    def get_last_exception(self, reset=False):
        """
        Retrieves the last recorded fault.
        :param reset: when True, the fault is cleared.
        """
        return self.take_fault() if reset else self.peek_fault()
