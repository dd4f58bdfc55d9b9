"""
Construction-time options for a serial device and its worker.
"""
import logging
import math
import os

from configobj import ConfigObjError

from serialdevice.conduit.base import end_of_line
from serialdevice.conduit.serial_conduit import check_port
from serialdevice.config.config import load_config
from serialdevice.errors import ConfigurationError
from serialdevice.messages import as_commands
from serialdevice.support.mixins import StringerMixin

logger = logging.getLogger(__name__)

schema_file = os.path.join(os.path.dirname(__file__), 'config', 'device.schema.cfg')

_callables = ('validator', 'reader', 'writer', 'on_connect')


class DeviceSettings(StringerMixin):
    """
    The options recognised by SerialDevice.

    :param port: the serial port path, e.g. '/dev/ttyUSB0'. Must be one of this machine's ports
        unless check_port is False.
    :param baudrate: the port speed
    :param timeout: seconds to wait for a reply line
    :param terminator: the line terminator style, one of 'CR', 'LF', 'CR/LF', 'LF/CR'
    :param interval: seconds between status polls when monitoring
    :param inter_command: seconds to pause between the commands of one transaction
    :param response_time: seconds to let the device settle between writing a command and reading its reply
    :param validator: called with each reply (terminator removed); raises if the reply is malformed
    :param reader: called with the conduit to read a reply line, instead of conduit.read_line()
    :param writer: called with the conduit and the payload, instead of conduit.write_line()
    :param connect_retries: how many times to try opening the port (may be math.inf)
    :param connect_retry_delay: seconds between attempts to open the port
    :param end_of_loop_delay: seconds the worker yields at the end of each iteration
    :param on_connect: called once with the conduit after the port has been opened
    :param status_commands: the Command(s) sent every interval while monitoring
    :param watchdog_period: seconds between watchdog checks
    :param progress_interval: seconds between progress log lines while waiting for the worker
    :param status_timeout: seconds to wait for a status; derived from the other options when None
    :param worker_start_timeout: seconds to wait for the worker thread to report it is running
    :param log_directory: where to append the per-device log file, None for no file
    :param encoding: the text encoding used on the line
    :param check_port: verify the port exists on this machine
    """

    def __init__(self, port=None, baudrate=115200, timeout=2.0, terminator=None, interval=5.0,
                 inter_command=0.0, response_time=0.0, validator=None, reader=None, writer=None,
                 connect_retries=math.inf, connect_retry_delay=5.0, end_of_loop_delay=0.5,
                 on_connect=None, status_commands=(), watchdog_period=5.0, progress_interval=1.0,
                 status_timeout=None, worker_start_timeout=5.0, log_directory=None,
                 encoding='ascii', check_port=True):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.terminator = terminator
        self.interval = interval
        self.inter_command = inter_command
        self.response_time = response_time
        self.validator = validator
        self.reader = reader
        self.writer = writer
        self.connect_retries = connect_retries
        self.connect_retry_delay = connect_retry_delay
        self.end_of_loop_delay = end_of_loop_delay
        self.on_connect = on_connect
        self.status_commands = status_commands
        self.watchdog_period = watchdog_period
        self.progress_interval = progress_interval
        self.status_timeout = status_timeout
        self.worker_start_timeout = worker_start_timeout
        self.log_directory = log_directory
        self.encoding = encoding
        self.check_port = check_port
        self.validate()

    def validate(self):
        """
        Checks the options, normalising where possible.
        :raises ConfigurationError: for missing or invalid options.
        """
        if not self.port:
            raise ConfigurationError("Must supply a 'port' argument")
        if not self.terminator:
            raise ConfigurationError("Must specify a terminator")
        self.eol = end_of_line(self.terminator)
        try:
            self.status_commands = as_commands(self.status_commands or ())
        except TypeError as e:
            raise ConfigurationError("Bad status_commands: %s" % e) from e
        self.baudrate = self._number('baudrate', self.baudrate, int, minimum=1)
        self.connect_retries = self._number('connect_retries', self.connect_retries, float, minimum=1)
        for name in ('timeout', 'interval', 'inter_command', 'response_time', 'connect_retry_delay',
                     'end_of_loop_delay', 'watchdog_period', 'progress_interval', 'worker_start_timeout'):
            setattr(self, name, self._number(name, getattr(self, name), float, minimum=0))
        if self.status_timeout is not None:
            self.status_timeout = self._number('status_timeout', self.status_timeout, float, minimum=0)
        for name in _callables:
            value = getattr(self, name)
            if value is not None and not callable(value):
                raise ConfigurationError("'%s' must be callable" % name)
        if self.check_port:
            check_port(self.port)
        return self

    @staticmethod
    def _number(name, value, kind, minimum):
        try:
            result = kind(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("Bad '%s': %r" % (name, value)) from e
        if result < minimum:
            raise ConfigurationError("'%s' must be at least %s, not %s" % (name, minimum, value))
        return result

    @property
    def has_status(self):
        return bool(self.status_commands)

    @property
    def effective_status_timeout(self):
        """ how long to wait for a status: one interval plus one status transaction, plus a margin. """
        if self.status_timeout is not None:
            return self.status_timeout
        transaction = len(self.status_commands) * (self.timeout + self.response_time + self.inter_command)
        return self.interval + transaction + 1.0

    @property
    def component_name(self):
        """ the port as a name fit for files and threads, e.g. '_dev_ttyUSB0' """
        return self.port.replace('/', '_')

    @classmethod
    def from_config(cls, name, directory, **overrides):
        """
        Loads the scalar options from the configuration files named after `name` in `directory`.
        Keyword arguments supply the options that cannot be expressed in a file (callables,
        status commands) and take precedence over the files.
        """
        try:
            config = load_config(name, directory, schema_file)
        except (ConfigObjError, IOError) as e:
            raise ConfigurationError("Unable to load device configuration '%s': %s" % (name, e)) from e
        options = dict(config)
        options.update(overrides)
        logger.debug("loaded device configuration '%s' from %s" % (name, directory))
        return cls(**options)
