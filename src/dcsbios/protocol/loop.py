"""
Background threads used by the transport. Each runs a template method repeatedly until it is stopped.
"""
import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Continually runs a given function on a background thread.
        Exceptions are logged and posted to exception_handler(), after which the loop carries on.
        The background thread is registered as a daemon.
    """

    def __init__(self, fn: Callable=None, args=(), name=None, log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param name the name given to the background thread
        """
        self.fn = fn
        self.args = args
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log
        self._lock = threading.Lock()

    def start(self):
        """
        Starts the background thread. Starting a loop that is already running does nothing.
        A stopped loop can be started again.
        """
        with self._lock:
            if self.background_thread is None:
                self.stop_event.clear()
                t = threading.Thread(target=self._run, name=self.name, daemon=True)
                self.background_thread = t
                t.start()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the stop signal is not received.
        """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting", self.name)

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    @property
    def alive(self) -> bool:
        thread = self.background_thread
        return thread is not None and thread.is_alive()

    def signal_stop(self):
        """ asks the loop to exit after the current iteration, without waiting for it. """
        self.stop_event.set()

    def stop(self, timeout=None):
        """ stops the loop and waits for the thread to exit, unless called from the loop's own thread. """
        self.stop_event.set()
        with self._lock:
            thread = self.background_thread
            self.background_thread = None
        if thread and thread is not threading.current_thread():
            self._wake()
            thread.join(timeout)

    def _wake(self):
        """ template method to unblock the loop if it is waiting on something other than the stop event. """
        pass


class ThrottleTimer(AsyncLoop):
    """
    Raises an auto-reset signal once per period. A consumer with nothing to do waits on the signal
    instead of polling, so idle CPU use stays low and the added latency is at most one period.
    """

    def __init__(self, period=0.01, name='dcsbios-throttle'):
        super().__init__(self._next_tick, name=name)
        self.period = period
        self._tick = threading.Event()

    def _next_tick(self):
        # the stop event doubles as the sleep so stop() does not wait a full period
        if not self.stop_event.wait(self.period):
            self._tick.set()

    def wait(self, timeout=None) -> bool:
        """
        Blocks until the next tick, and consumes it.
        :return: True if the signal was raised, False on timeout.
        """
        signalled = self._tick.wait(timeout)
        self._tick.clear()
        return signalled

    def release(self):
        """ wakes any thread blocked in wait(). """
        self._tick.set()
