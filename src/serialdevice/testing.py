"""
Test doubles for running a SerialDevice without hardware.
"""
import sys
import threading

from serialdevice.conduit.base import Conduit, end_of_line
from serialdevice.errors import PortDisconnectedError, ReadTimeoutError


def debug_timeout(value):
    """
    Replaces the timeout value with a very large one if the tests are running under a debugger,
    so a breakpoint doesn't fail the test.
    """
    return value if sys.gettrace() is None else 100000


def echo(payload):
    """ the default device behaviour: replies 'v <payload>' """
    return 'v ' + payload


class FakeConduit(Conduit):
    """
    A conduit to a scripted device.

    Every line written is passed to `device`, a callable returning the reply text (without
    terminator), or None to stay silent. Silence makes the next read time out.

    :param device: the scripted device
    :param terminator: the line terminator style
    :param baudrate: the initial port speed
    """

    def __init__(self, device=echo, terminator='CR', baudrate=115200, timeout=0.1):
        self.device = device
        self._eol = end_of_line(terminator)
        self._baudrate = baudrate
        self._timeout = timeout
        self._open = True
        self._lock = threading.Lock()
        self.written = []
        self.pending = []
        self.flushes = 0

    @property
    def target(self):
        return self

    @property
    def is_open(self):
        return self._open

    @property
    def eol(self):
        return self._eol

    @property
    def baudrate(self):
        return self._baudrate

    @baudrate.setter
    def baudrate(self, value):
        self._check_open("setting BaudRate")
        self._baudrate = value

    @property
    def timeout(self):
        return self._timeout

    def write_line(self, text):
        self._check_open("write")
        with self._lock:
            self.written.append(text)
            reply = self.device(text)
            if reply is not None:
                self.pending.append(reply + self._eol)

    def read_line(self):
        self._check_open("read")
        with self._lock:
            if self.pending:
                return self.pending.pop(0)
        raise ReadTimeoutError("No response within %s seconds" % self._timeout)

    def flush_input(self):
        self._check_open("flush")
        with self._lock:
            self.pending = []
            self.flushes += 1

    def close(self):
        self._open = False

    def unplug(self):
        """ simulates the device being pulled out: every later operation fails """
        self._open = False

    def _check_open(self, action):
        if not self._open:
            raise PortDisconnectedError("%s failed: device disconnected" % action)


class FakeConduitFactory:
    """
    A conduit_factory handing out FakeConduits, optionally failing the first `failures` opens.
    The conduits are kept in `opened`, most recent last.
    """

    def __init__(self, device=echo, failures=0, error=None):
        self.device = device
        self.failures = failures
        self.error = error
        self.opened = []
        self.calls = []

    def __call__(self, settings, baudrate):
        self.calls.append(baudrate)
        if self.failures > 0:
            self.failures -= 1
            raise self.error if self.error is not None else PortDisconnectedError(
                "open of %s failed: no such device" % settings.port)
        conduit = FakeConduit(self.device, settings.terminator, baudrate, settings.timeout)
        self.opened.append(conduit)
        return conduit

    @property
    def last(self):
        return self.opened[-1] if self.opened else None
