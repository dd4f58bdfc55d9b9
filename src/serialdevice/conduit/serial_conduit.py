"""
Implements a conduit over a serial port.
"""
import errno
import logging
from contextlib import contextmanager

import serial
from serial.serialutil import PortNotOpenError, SerialException
from serial.tools import list_ports

from serialdevice.conduit.base import Conduit, end_of_line
from serialdevice.errors import ConfigurationError, PortDisconnectedError, ReadTimeoutError, TransportError

logger = logging.getLogger(__name__)

_disconnected_errnos = {errno.EIO, errno.ENXIO, errno.ENODEV, errno.EBADF}
_disconnected_phrases = ('disconnected', 'not open', 'no such device', 'device not configured')


def is_disconnection(e):
    """
    Determines if a pyserial/OS error means the port went away.
    >>> is_disconnection(OSError(5, 'Input/output error'))
    True
    >>> is_disconnection(ValueError('bad'))
    False
    """
    if isinstance(e, PortNotOpenError):
        return True
    if isinstance(e, OSError) and e.errno in _disconnected_errnos:
        return True
    text = str(e).lower()
    return isinstance(e, (SerialException, OSError)) and any(p in text for p in _disconnected_phrases)


def translate_error(e, action):
    """ converts an exception from the port into a TransportError """
    kind = PortDisconnectedError if is_disconnection(e) else TransportError
    return kind("%s failed: %s" % (action, e))


@contextmanager
def serial_errors(action):
    """ translates errors raised by the port within the block into TransportError """
    try:
        yield
    except (SerialException, OSError, ValueError) as e:
        raise translate_error(e, action) from e


class SerialConduit(Conduit):
    """
    A conduit that provides comms via a serial port.

    :param ser: an open serial.Serial instance
    :param terminator: one of 'CR', 'LF', 'CR/LF', 'LF/CR'
    :param encoding: the text encoding used on the line
    """

    def __init__(self, ser: serial.Serial, terminator, encoding='ascii'):
        self.ser = ser
        self._eol = end_of_line(terminator)
        self.terminator = terminator
        self.encoding = encoding

    @property
    def target(self):
        return self.ser

    @property
    def is_open(self) -> bool:
        return self.ser.is_open

    @property
    def eol(self):
        return self._eol

    @property
    def baudrate(self):
        return self.ser.baudrate

    @baudrate.setter
    def baudrate(self, value):
        with serial_errors("setting BaudRate %s on %s" % (value, self.ser.port)):
            self.ser.baudrate = value

    @property
    def timeout(self):
        return self.ser.timeout

    def write_line(self, text):
        data = (text + self._eol).encode(self.encoding)
        with serial_errors("write to %s" % self.ser.port):
            self.ser.write(data)

    def read_line(self):
        eol = self._eol.encode(self.encoding)
        with serial_errors("read from %s" % self.ser.port):
            data = self.ser.read_until(eol)
        if not data.endswith(eol):
            raise ReadTimeoutError("No response within %s seconds from %s" % (self.ser.timeout, self.ser.port))
        return data.decode(self.encoding, errors='replace')

    def flush_input(self):
        with serial_errors("flush of %s" % self.ser.port):
            self.ser.reset_input_buffer()

    def close(self):
        try:
            self.ser.close()
        except (SerialException, OSError) as e:
            logger.warning("error closing %s: %s" % (self.ser.port, e))


def serial_port_info():
    """
    :return: a tuple of serial port info tuples,
    :rtype:
    """
    return tuple(list_ports.comports())


def serial_ports():
    """
    Returns a generator for all available serial port device names.
    """
    for port in serial_port_info():
        yield port[0]


def check_port(port):
    """
    Verifies the port is one of this machine's serial ports.
    :raises ConfigurationError: when there are no ports, or the port is not among them.
    """
    known = tuple(serial_ports())
    if not known:
        raise ConfigurationError("No serial ports on this machine")
    if port not in known:
        raise ConfigurationError("Unknown device '%s', must be one of [%s]" % (port, ", ".join(known)))
    return port


def open_serial_conduit(port, baudrate, timeout, terminator, encoding='ascii'):
    """
    Opens the serial port and wraps it in a SerialConduit.
    :raises TransportError: if the port cannot be opened.
    """
    with serial_errors("open of %s at %s" % (port, baudrate)):
        ser = serial.Serial(port=port, baudrate=baudrate, timeout=timeout)
    logger.info("opened serial port %s" % port)
    return SerialConduit(ser, terminator, encoding)
