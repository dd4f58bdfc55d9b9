"""
The worker owns the serial port. It runs on its own thread, picking requests out of the
mailbox and answering them there.
"""
import logging
import numbers

from serialdevice.conduit.serial_conduit import open_serial_conduit
from serialdevice.errors import InvalidDirectiveError, NotConnectedError, WorkerUnavailableError
from serialdevice.mailbox import COMMAND, COMMAND_RESPONSE, CONNECTED, DIRECTIVE, DIRECTIVE_RESPONSE, EXCEPTION, \
    NOT_FOUND, STATUS
from serialdevice.messages import ConnectionState, DirectiveName, Response, first_error
from serialdevice.support.async_loop import AsyncLoop
from serialdevice.support.retry_strategy import CountedRetryStrategy, PeriodRetryStrategy
from serialdevice.transaction import TransactionExecutor

logger = logging.getLogger(__name__)


def open_port(settings, baudrate):
    """ the default conduit factory: opens the configured serial port """
    return open_serial_conduit(settings.port, baudrate, settings.timeout, settings.terminator, settings.encoding)


class SerialWorker(AsyncLoop):
    """
    A serial worker's main loop.

    Each iteration handles at most one of, in order of precedence:
    - a pending directive (always wins, so 'quit' and 'locked' are never starved)
    - a pending command transaction, when connected
    - a status poll, when connected, monitoring, unlocked and the interval has elapsed
      since the last interaction with the device.

    :param settings: the DeviceSettings
    :param mailbox: the Mailbox shared with the device facade
    :param conduit_factory: called with (settings, baudrate) to open the port
    """

    busy_poll = 0.1

    def __init__(self, settings, mailbox, conduit_factory=open_port, log=logger):
        super().__init__(log=log, name="SerialWorker-%s" % settings.component_name)
        self.settings = settings
        self.mailbox = mailbox
        self.conduit_factory = conduit_factory
        self.state = ConnectionState.DISCONNECTED
        self.locked = False
        self.monitoring = False
        self.baudrate = settings.baudrate
        self.conduit = None
        self.executor = None
        self.connect_strategy = CountedRetryStrategy(settings.connect_retries, settings.connect_retry_delay)
        self.status_schedule = PeriodRetryStrategy(settings.interval)
        self._directives = {
            DirectiveName.quit: self._quit,
            DirectiveName.connected: self._connected,
            DirectiveName.baudRate: self._baud_rate,
            DirectiveName.locked: self._locked,
            DirectiveName.monitoring: self._monitoring,
        }

    @property
    def connected(self):
        return self.state is ConnectionState.CONNECTED

    def startup(self):
        self.logger.info("worker for '%s' entered" % self.settings.port)

    def loop(self):
        self.iterate()
        self.wait(self.settings.end_of_loop_delay)     # let the CPU breathe

    def shutdown(self):
        if self.conduit is not None:
            self._disconnect()

    def exception_handler(self, e):
        """ errors outside any tracked request are surfaced for the watchdog """
        super().exception_handler(e)
        self.mailbox.set(EXCEPTION, e)

    def iterate(self):
        """ runs one pass of the worker loop """
        mailbox = self.mailbox
        directive = mailbox.get(DIRECTIVE)
        if directive is not NOT_FOUND:
            self.handle_directive(directive)
            return

        commands = mailbox.get(COMMAND)
        if not self.connected:
            if commands is not NOT_FOUND:
                error = NotConnectedError("'%s': Not connected" % self.settings.port)
                mailbox.respond(COMMAND, COMMAND_RESPONSE, [Response.of_error(error) for _ in commands])
            return

        if commands is not NOT_FOUND:
            self.handle_command(commands)
        elif self.monitoring and not self.locked and self.status_schedule.due():
            self.poll_status()

    def handle_directive(self, directive):
        """
        Directives are requests to the worker, not to the device. A directive without a value
        reads a setting, a directive with a value changes it. The result, or the error, is the
        directive's response.
        """
        self.logger.debug("directive: %s" % directive.label)
        handler = self._directives.get(directive.name) if isinstance(directive.name, DirectiveName) else None
        if handler is None:
            result = InvalidDirectiveError("Invalid directive '%s'" % directive.name)
        else:
            try:
                result = handler(directive.value)
            except Exception as e:
                self.logger.debug("directive %s failed: %s" % (directive.label, e))
                result = e
        self.mailbox.respond(DIRECTIVE, DIRECTIVE_RESPONSE, result)
        if directive.name is DirectiveName.quit:
            self.stop()

    def handle_command(self, commands):
        """ sends the commands to the device as one transaction and answers with the responses """
        try:
            responses = self._transaction(commands, "command")
        except Exception as e:
            self.logger.exception(e)
            responses = [Response.of_error(e) for _ in commands]
        self.mailbox.respond(COMMAND, COMMAND_RESPONSE, responses)

    def poll_status(self):
        """
        Sends the status commands. A failed status command has no requester to report to,
        so its error is also posted as an exception for the watchdog.
        """
        responses = self._transaction(self.settings.status_commands, "status")
        self.mailbox.set(STATUS, responses)
        error = first_error(responses)
        if error is not None:
            self.mailbox.set(EXCEPTION, error)

    def _transaction(self, commands, label):
        executor = self.executor
        if not self.locked:
            executor.wait_until_idle(self.busy_poll, "for %s: " % label)
        try:
            return executor.execute(commands, locked=self.locked)
        finally:
            self.status_schedule.touch()

    def _quit(self, value):
        if self.connected:
            self._disconnect()
        return True

    def _connected(self, value):
        if value is None:
            return self.connected
        if require_bool(DirectiveName.connected, value):
            self._connect()
        elif self.conduit is not None:
            self._disconnect()
        return self.connected

    def _connect(self):
        """
        Opens the port, trying up to connect_retries times.
        :raises: the last error when every attempt failed
        """
        if self.connected:
            return
        settings = self.settings
        strategy = self.connect_strategy
        self.state = ConnectionState.CONNECTING
        last_error = None
        for attempt in strategy.attempts():
            if not self.running():
                break
            self.logger.info("attempt#%d to connect to '%s' at %d" % (attempt, settings.port, self.baudrate))
            try:
                self._open()
                self.logger.info("attempt#%d succeeded" % attempt)
                return
            except Exception as e:
                self.logger.info("attempt#%d failed (error: %s)" % (attempt, e))
                last_error = e
            if strategy.is_last(attempt) or self.wait(strategy()):
                break
        self.state = ConnectionState.DISCONNECTED
        self.mailbox.set(CONNECTED, False)
        raise last_error if last_error is not None else WorkerUnavailableError("The worker stopped while connecting")

    def _open(self):
        conduit = self.conduit_factory(self.settings, self.baudrate)
        try:
            if self.settings.on_connect is not None:
                self.settings.on_connect(conduit)
        except Exception:
            conduit.close()
            raise
        self.conduit = conduit
        self.executor = TransactionExecutor(conduit, self.settings, log=self.logger)
        self.state = ConnectionState.CONNECTED
        self.mailbox.set(CONNECTED, True)

    def _disconnect(self):
        conduit = self.conduit
        self.conduit = None
        self.executor = None
        if conduit is not None:
            conduit.close()
            self.logger.info("disconnected from '%s'" % self.settings.port)
        self.state = ConnectionState.DISCONNECTED
        self.mailbox.set(CONNECTED, False)

    def _baud_rate(self, value):
        if value is not None:
            rate = parse_baud_rate(value)
            if self.conduit is not None:
                self.conduit.baudrate = rate
            self.baudrate = rate
        return self.conduit.baudrate if self.conduit is not None else self.baudrate

    def _locked(self, value):
        if value is not None:
            self.locked = require_bool(DirectiveName.locked, value)
        return self.locked

    def _monitoring(self, value):
        if value is not None:
            value = require_bool(DirectiveName.monitoring, value)
            if value and not self.settings.has_status:
                raise InvalidDirectiveError("Cannot monitor '%s': no status commands were configured" %
                                            self.settings.port)
            self.monitoring = value
        return self.monitoring


def require_bool(name, value):
    if not isinstance(value, bool):
        raise InvalidDirectiveError("Bad %s value %r, must be a bool (not a '%s')" %
                                    (name.value, value, type(value).__name__))
    return value


def parse_baud_rate(value):
    """
    Accepts a positive integral number or a string holding one.
    >>> parse_baud_rate('9600')
    9600
    >>> parse_baud_rate(1200.0)
    1200
    """
    if isinstance(value, str):
        try:
            rate = int(value.strip())
        except ValueError:
            raise InvalidDirectiveError("Bad BaudRate '%s'" % value) from None
    elif isinstance(value, numbers.Real) and not isinstance(value, bool):
        if isinstance(value, float) and not value.is_integer():
            raise InvalidDirectiveError("Bad BaudRate %s, must be a whole number" % value)
        rate = int(value)
    else:
        raise InvalidDirectiveError("Bad BaudRate must be either a 'str' or an integral number (not a '%s')" %
                                    type(value).__name__)
    if rate <= 0:
        raise InvalidDirectiveError("Bad BaudRate %s, must be positive" % value)
    return rate
