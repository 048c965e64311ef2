import threading


class EventSource(object):
    """
    Fans out fired events to registered handlers. Handlers may be added and removed from any thread;
    firing works on a snapshot of the handlers so a handler can unregister itself while being called.
    Handlers are invoked synchronously on the firing thread.
    """

    def __init__(self):
        self._handlers = []
        self._lock = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        with self._lock:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def handlers(self):
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        for handler in self.handlers():
            handler(*args, **kwargs)

    def fire_all(self, events):
        handlers = self.handlers()
        for e in events:
            for handler in handlers:
                handler(e)
