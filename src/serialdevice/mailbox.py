"""
The key/value store shared by the device facade and its worker.

Requests and responses travel as keys. The requester writes a request key and later takes
the response key; the worker answers by writing the response key and deleting the request
key in one step. Each channel (directive, command) therefore has at most one request
outstanding, and the presence of a key is itself part of the protocol.
"""
import threading

from serialdevice.support.events import EventSource

DIRECTIVE = 'directive'
DIRECTIVE_RESPONSE = 'directive-response'
COMMAND = 'command'
COMMAND_RESPONSE = 'command-response'
STATUS = 'status'
EXCEPTION = 'exception'
CONNECTED = 'connected'


class _NotFound:
    def __repr__(self):
        return 'NOT_FOUND'

    def __bool__(self):
        return False


NOT_FOUND = _NotFound()


class Mailbox:
    """
    A thread-safe dictionary whose mutations are observable.

    Observers registered with subscribe() are called with (key, value) after every
    mutation, on the thread that made it and outside the mailbox lock. The value is None
    when the key was removed.
    """

    def __init__(self):
        self._values = dict()
        self._lock = threading.RLock()
        self.updates = EventSource()

    def subscribe(self, observer):
        self.updates.add(observer)

    def unsubscribe(self, observer):
        self.updates.remove(observer)

    def _notify(self, changes):
        for key, value in changes:
            self.updates.fire(key, value)

    def set(self, key, value):
        with self._lock:
            self._values[key] = value
        self._notify([(key, value)])

    def get(self, key, default=NOT_FOUND):
        with self._lock:
            return self._values.get(key, default)

    def has(self, key):
        with self._lock:
            return key in self._values

    def keys(self):
        with self._lock:
            return tuple(self._values.keys())

    def remove(self, key):
        """ removes the key. Returns True if it was present. """
        with self._lock:
            present = key in self._values
            if present:
                del self._values[key]
        if present:
            self._notify([(key, None)])
        return present

    def put_if_absent(self, key, value):
        """
        Writes the key only when it is not already present.
        :return: True if the value was written.
        """
        with self._lock:
            if key in self._values:
                return False
            self._values[key] = value
        self._notify([(key, value)])
        return True

    def take(self, key, default=NOT_FOUND):
        """ atomically reads and removes a key. """
        with self._lock:
            value = self._values.pop(key, NOT_FOUND)
        if value is NOT_FOUND:
            return default
        self._notify([(key, None)])
        return value

    def respond(self, request_key, response_key, value):
        """
        Answers a request: writes the response key and removes the request key in one step,
        so a requester never sees a response while its request still appears outstanding.
        """
        with self._lock:
            self._values[response_key] = value
            removed = self._values.pop(request_key, NOT_FOUND) is not NOT_FOUND
        changes = [(response_key, value)]
        if removed:
            changes.append((request_key, None))
        self._notify(changes)

    def clear(self):
        with self._lock:
            removed = tuple(self._values.keys())
            self._values.clear()
        self._notify([(key, None) for key in removed])

    def __repr__(self):
        return "Mailbox(%s)" % ", ".join(self.keys())
