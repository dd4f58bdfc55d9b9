"""
The values exchanged between the device facade and its worker.

- Command: one line sent to the device, optionally awaiting a reply.
- Response: the outcome of one command - the reply or the error that prevented it.
- Directive: a control request to the worker itself (connect, baud rate, lock, ...)
"""
from datetime import datetime
from enum import Enum

from serialdevice.support.mixins import CommonEqualityMixin, FrozenMixin, StringerMixin


class DirectiveName(Enum):
    connected = 'connected'
    baudRate = 'baudRate'
    locked = 'locked'
    monitoring = 'monitoring'
    quit = 'quit'

    @classmethod
    def lookup(cls, name):
        """
        Resolves a directive name, ignoring case and underscores.
        :return: the DirectiveName, or None if the name is not known.
        """
        if isinstance(name, cls):
            return name
        key = str(name).replace('_', '').lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class ConnectionState(Enum):
    DISCONNECTED = 'Disconnected'
    CONNECTING = 'Connecting'
    CONNECTED = 'Connected'


class Command(FrozenMixin, CommonEqualityMixin, StringerMixin):
    """
    A line to send to the device.

    :param payload: the text to write, without the line terminator.
    :param expects_reply: when True, one line is read back after writing.
    """

    def __init__(self, payload: str, expects_reply: bool=True):
        self.payload = payload
        self.expects_reply = bool(expects_reply)
        self._freeze()

    def __repr__(self):
        return "Command(%r, %r)" % (self.payload, self.expects_reply)


def as_commands(commands):
    """ accepts a single Command or an iterable of them and returns a list. """
    if isinstance(commands, Command):
        return [commands]
    result = list(commands)
    for c in result:
        if not isinstance(c, Command):
            raise TypeError("expected a Command, not %s" % type(c).__name__)
    return result


class Response(CommonEqualityMixin, StringerMixin):
    """
    The outcome of one command in a transaction.

    :param value: the reply with the terminator removed, '' when no reply was expected.
    :param error: the exception that prevented a valid reply, or None.
    :param timestamp: when the outcome was determined.
    """

    def __init__(self, value: str='', error: Exception=None, timestamp: datetime=None):
        self.value = value
        self.error = error
        self.timestamp = timestamp if timestamp is not None else datetime.now()

    @classmethod
    def of_error(cls, error):
        return cls('', error)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def __repr__(self):
        if self.failed:
            return "Response(error=%r)" % (self.error,)
        return "Response(%r)" % (self.value,)


def first_error(responses):
    """ the error of the first failed response, or None """
    for r in responses or ():
        if r.failed:
            return r.error
    return None


class Directive(CommonEqualityMixin, StringerMixin):
    """
    A control request to the worker. A value of None reads the setting, anything else writes it.
    Unknown names are kept as given so the worker can reject them.
    """

    def __init__(self, name, value=None):
        known = DirectiveName.lookup(name)
        self.name = known if known is not None else name
        self.value = value

    @property
    def is_get(self):
        return self.value is None

    @property
    def label(self):
        name = self.name.value if isinstance(self.name, DirectiveName) else str(self.name)
        return name if self.is_get else "%s=%r" % (name, self.value)

    def __repr__(self):
        return "Directive(%s)" % self.label
