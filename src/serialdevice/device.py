"""
SerialDevice facilitates communications with a serial-port attached device.

Implements the following 'device' paradigm:
 - A worker thread owns the serial port, isolating its blocking I/O from the caller.
 - Only one transaction can be sent to the device at any given time.
 - Directives control the worker itself: connected, baudRate, locked, monitoring and quit.
 - One or more commands can be sent to the device atomically, each with its own response
   (optionally no response, e.g. 'reset').
 - While monitoring, the worker periodically sends the status commands when the device is idle.
 - A watchdog rebuilds the connection when the worker dies or the port goes away.
"""
import logging
import os
import threading
import time
from contextlib import contextmanager

from serialdevice.errors import DeviceBusyError, InvalidDirectiveError, NotConnectedError, NotMonitoringError, \
    StatusTimeoutError, WorkerUnavailableError
from serialdevice.mailbox import COMMAND, COMMAND_RESPONSE, DIRECTIVE, DIRECTIVE_RESPONSE, EXCEPTION, NOT_FOUND, \
    STATUS, Mailbox
from serialdevice.messages import Directive, DirectiveName, as_commands, first_error
from serialdevice.settings import DeviceSettings
from serialdevice.watchdog import Watchdog
from serialdevice.worker import SerialWorker, open_port, parse_baud_rate

logger = logging.getLogger(__name__)

log_format = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def log_filename(settings):
    return os.path.join(settings.log_directory, 'SerialDevice-%s.txt' % settings.component_name)


def attach_log_file(log, settings):
    """
    Appends the device's log records to its own file in settings.log_directory.
    Attaching the same file twice has no effect.
    """
    filename = os.path.abspath(log_filename(settings))
    for handler in log.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == filename:
            return handler
    os.makedirs(settings.log_directory, exist_ok=True)
    handler = logging.FileHandler(filename, mode='a')
    handler.setFormatter(logging.Formatter(log_format))
    log.addHandler(handler)
    if log.level == logging.NOTSET or log.level > logging.DEBUG:
        log.setLevel(logging.DEBUG)
    return handler


def raise_first_error(responses):
    """ raises the first per-command error, with the full response list attached """
    error = first_error(responses)
    if error is not None:
        error.responses = responses
        raise error
    return responses


class SerialDevice:
    """
    The caller's side of a serial device.

    Either pass the options as keyword arguments (see DeviceSettings), or a ready-made
    DeviceSettings as `settings`.

    :param conduit_factory: called on the worker thread with (settings, baudrate) to open the port.
    :param log: the logger to use, by default one named after the port.
    """

    poll_interval = 0.25    # fallback polling while waiting on the mailbox

    def __init__(self, port=None, settings: DeviceSettings=None, conduit_factory=open_port, log=None, **options):
        if settings is None:
            settings = DeviceSettings(port, **options)
        elif port is not None or options:
            raise TypeError("give either settings or port and options, not both")
        self.settings = settings
        self.port = settings.port
        self.conduit_factory = conduit_factory
        self.logger = log if log is not None else logger.getChild(settings.component_name)
        if settings.log_directory:
            attach_log_file(self.logger, settings)

        self.mailbox = Mailbox()
        self.worker = None
        self.watchdog = None
        self.worker_exception = None
        self._connected = False
        self._monitoring = False
        self._locked = False
        self._exceptions_seen = 0
        self._updated = threading.Condition()
        self._lifecycle = threading.RLock()
        self._directive_channel = threading.RLock()
        self._command_channel = threading.Lock()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return "SerialDevice(%r, connected=%s)" % (self.port, self._connected)

    # -- life-cycle

    def connect(self):
        """
        Starts a new worker and tells it to connect to the device.
        :raises: the worker's error when the port could not be opened. The device is then disconnected.
        """
        with self._lifecycle:
            self._teardown()
            worker = self.worker = self._new_worker()
            worker.start()
            self.logger.info("started %s" % worker.name)
            if not worker.started_event.wait(self.settings.worker_start_timeout):
                self._teardown()
                raise WorkerUnavailableError("The worker for '%s' did not start within %s seconds" %
                                             (self.port, self.settings.worker_start_timeout))
            self.logger.info("%s is running" % worker.name)
            self.mailbox.subscribe(self._on_mailbox_update)
            self.watchdog = Watchdog(self, self.settings.watchdog_period, log=self.logger.getChild('watchdog'))
            self.watchdog.start()

            self.logger.info("sending connected=true")
            try:
                connected = self.directive(DirectiveName.connected, True) is True
                if connected:
                    self._restore_flags()
                self._connected = connected
            except Exception:
                self._teardown()
                raise
            self.logger.info("connected: %s" % self._connected)
            return self._connected

    def disconnect(self):
        """
        1. Tells the worker to disconnect from the device
        2. Waits for the worker to finish disconnecting
        3. Destroys the worker and the watchdog
        Any error reported while disconnecting is raised after the teardown.
        """
        with self._interrupting_lifecycle():
            error = None
            if self._connected and self._worker_running():
                self.logger.info("sending 'connected=false'")
                try:
                    self.directive(DirectiveName.connected, False)
                except Exception as e:
                    error = e
            self._teardown()
            if error is not None:
                raise error

    def close(self):
        """ disconnects, making sure the worker and the watchdog are gone even when that fails """
        try:
            self.disconnect()
        finally:
            with self._interrupting_lifecycle():
                self._teardown()

    @contextmanager
    def _interrupting_lifecycle(self):
        """
        Holds the life-cycle lock. While another thread holds it, e.g. a reconnect retrying a
        missing port forever, the current worker is told to stop until the lock is released.
        """
        while not self._lifecycle.acquire(timeout=self.poll_interval):
            worker = self.worker
            if worker is not None and worker.running():
                self.logger.info("interrupting %s" % worker.name)
                worker.stop_event.set()
        try:
            yield
        finally:
            self._lifecycle.release()

    def reconnect(self, reason, watchdog=None):
        """
        Tears the connection down and builds it up again.
        :param watchdog: the watchdog asking. Requests from a watchdog that has since been
            replaced are ignored.
        :return: True if the reconnection was attempted
        """
        with self._lifecycle:
            if watchdog is not None and watchdog is not self.watchdog:
                self.logger.debug("ignoring reconnect from a retired watchdog (%s)" % reason)
                return False
            self.logger.warning("%s, reconnecting" % reason)
            try:
                self.disconnect()
            except Exception as e:
                self.logger.warning("error while disconnecting '%s': %s" % (self.port, e))
            self.connect()
            return True

    def _new_worker(self):
        return SerialWorker(self.settings, self.mailbox, self.conduit_factory, log=self.logger.getChild('worker'))

    def _teardown(self):
        watchdog, self.watchdog = self.watchdog, None
        if watchdog is not None:
            watchdog.stop(self.settings.watchdog_period + 1)
        worker, self.worker = self.worker, None
        if worker is not None:
            worker.stop(self._join_timeout())
        self.mailbox.unsubscribe(self._on_mailbox_update)
        self.mailbox.clear()
        self._connected = False
        self.worker_exception = None

    def _join_timeout(self):
        settings = self.settings
        return settings.end_of_loop_delay + settings.response_time + settings.timeout * 2 + 1

    def _restore_flags(self):
        """ re-applies the lock and monitoring set before (re)connecting """
        if self._locked:
            self._locked = self.directive(DirectiveName.locked, True)
        if self._monitoring and self.settings.has_status:
            self._monitoring = self.directive(DirectiveName.monitoring, True)

    def _worker_running(self, worker=None):
        worker = worker if worker is not None else self.worker
        return worker is not None and worker.running() and worker.alive

    # -- mailbox plumbing

    def _on_mailbox_update(self, key, value):
        """ observer called whenever either party changes the mailbox """
        if key == EXCEPTION and value is not None:
            self.worker_exception = value
            with self._updated:
                self._exceptions_seen += 1
        with self._updated:
            self._updated.notify_all()

    def _await(self, predicate, what, timeout=None, worker=None):
        """
        Waits until predicate() holds, waking on mailbox updates and polling as a fallback.
        Logs progress every progress_interval.
        :return: True when the predicate held, False when the timeout elapsed first
        :raises WorkerUnavailableError: if the worker stops before the predicate holds
        """
        worker = worker if worker is not None else self.worker
        progress = self.settings.progress_interval or self.poll_interval
        start = time.monotonic()
        next_progress = start + progress
        with self._updated:
            while True:
                if predicate():
                    return True
                now = time.monotonic()
                if timeout is not None and now - start >= timeout:
                    return False
                if not self._worker_running(worker):
                    raise WorkerUnavailableError("The worker stopped while waiting for %s" % what)
                if now >= next_progress:
                    self.logger.debug("waiting for %s (%.1fs)" % (what, now - start))
                    next_progress = now + progress
                wait = self.poll_interval
                if timeout is not None:
                    wait = min(wait, start + timeout - now)
                self._updated.wait(wait)

    def take_unattached_exception(self):
        """
        Removes and returns an exception the worker posted outside of any request, or None.
        Exceptions are left in place while a directive or command is outstanding.
        """
        mailbox = self.mailbox
        if mailbox.has(DIRECTIVE) or mailbox.has(COMMAND):
            return None
        return mailbox.take(EXCEPTION, None)

    # -- requests

    def directive(self, name, value=None):
        """
        Sends a directive to the worker and waits for its response.
        The worker doesn't have to be connected to handle directives.
        :raises WorkerUnavailableError: when there is no running worker
        :raises: the error the worker answered with
        """
        with self._directive_channel:
            worker = self.worker
            if not self._worker_running(worker):
                self.logger.warning("The worker is not running, cannot send directive '%s'" % name)
                raise WorkerUnavailableError("No running worker for '%s'" % self.port)

            mailbox = self.mailbox
            directive = Directive(name, value)
            mailbox.remove(DIRECTIVE_RESPONSE)
            seen = self._exceptions_seen
            start = time.monotonic()
            mailbox.set(DIRECTIVE, directive)

            def answered():
                return mailbox.has(DIRECTIVE_RESPONSE) or \
                    (self._exceptions_seen != seen and mailbox.has(EXCEPTION) and mailbox.has(DIRECTIVE))

            self._await(answered, "response to directive(%s)" % directive.label, worker=worker)
            response = mailbox.take(DIRECTIVE_RESPONSE)
            if response is NOT_FOUND:
                response = mailbox.take(EXCEPTION, None)
                mailbox.remove(DIRECTIVE)
            self.logger.debug("directive %s (response: %r) took %.3fs" %
                              (directive.label, response, time.monotonic() - start))
            if isinstance(response, BaseException):
                raise response
            if directive.name is DirectiveName.quit:
                self._connected = False
            return response

    def command(self, commands):
        """
        Sends one or more commands to the device as one transaction.
        :param commands: a Command or a list of them
        :return: the Responses, one per command, or None if another transaction is still outstanding
        :raises NotConnectedError: when not connected
        :raises: the first per-command error, with the full list of responses as its `responses`
        """
        commands = as_commands(commands)
        if not self._connected:
            raise NotConnectedError("'%s': Not connected" % self.port)
        if not self._worker_running():
            raise WorkerUnavailableError("No running worker for '%s'" % self.port)
        if not self._command_channel.acquire(blocking=False):
            return self._busy()
        try:
            mailbox = self.mailbox
            mailbox.remove(COMMAND_RESPONSE)
            if not mailbox.put_if_absent(COMMAND, commands):
                return self._busy()
            start = time.monotonic()
            try:
                self._await(lambda: mailbox.has(COMMAND_RESPONSE), "response to %d command(s)" % len(commands))
            except WorkerUnavailableError:
                mailbox.remove(COMMAND)
                raise
            responses = mailbox.take(COMMAND_RESPONSE)
            self.logger.debug("command took %.3fs" % (time.monotonic() - start))
        finally:
            self._command_channel.release()
        return raise_first_error(responses)

    def _busy(self):
        self.logger.warning(str(DeviceBusyError("'%s': worker is busy, command not sent" % self.port)))
        return None

    def get_status(self, timeout=None):
        """
        Reads the latest status gathered by the worker while monitoring.
        :param timeout: seconds to wait for a first status, by default one interval plus one transaction
        :raises StatusTimeoutError: if no status arrived in time
        """
        if not self._connected:
            raise NotConnectedError("'%s': Not connected" % self.port)
        if not self.get_monitoring():
            raise NotMonitoringError("'%s': Not monitoring" % self.port)
        timeout = self.settings.effective_status_timeout if timeout is None else timeout
        mailbox = self.mailbox
        if not self._await(lambda: mailbox.has(STATUS), "status", timeout):
            raise StatusTimeoutError("No status from '%s' within %.1f seconds" % (self.port, timeout))
        return raise_first_error(mailbox.get(STATUS))

    @property
    def status(self):
        return self.get_status()

    # -- settings backed by directives

    def query_connected(self):
        """ asks the worker whether it is connected """
        return self.directive(DirectiveName.connected)

    def get_monitoring(self):
        if self._connected:
            self._monitoring = self.directive(DirectiveName.monitoring)
        return self._monitoring

    def set_monitoring(self, value):
        if self._connected:
            self._monitoring = self.directive(DirectiveName.monitoring, value)
        else:
            if not isinstance(value, bool):
                raise InvalidDirectiveError("Bad monitoring value %r, must be a bool" % (value,))
            if value and not self.settings.has_status:
                raise InvalidDirectiveError("Cannot monitor '%s': no status commands were configured" % self.port)
            self._monitoring = value
        return self._monitoring

    def get_locked(self):
        if self._connected:
            self._locked = self.directive(DirectiveName.locked)
        return self._locked

    def set_locked(self, value):
        if self._connected:
            self._locked = self.directive(DirectiveName.locked, value)
        else:
            if not isinstance(value, bool):
                raise InvalidDirectiveError("Bad locked value %r, must be a bool" % (value,))
            self._locked = value
        return self._locked

    def get_baud_rate(self):
        if self._connected:
            return self.directive(DirectiveName.baudRate)
        return self.settings.baudrate

    def set_baud_rate(self, value):
        """
        Changes the port speed. The new speed is also used by later (re)connections.
        """
        if self._connected:
            rate = self.directive(DirectiveName.baudRate, value)
        else:
            rate = parse_baud_rate(value)
        self.settings.baudrate = rate
        return rate

    @property
    def connected(self):
        return self._connected

    @connected.setter
    def connected(self, value):
        if value:
            self.connect()
        else:
            self.disconnect()

    @property
    def monitoring(self):
        return self.get_monitoring()

    @monitoring.setter
    def monitoring(self, value):
        self.set_monitoring(value)

    @property
    def locked(self):
        return self.get_locked()

    @locked.setter
    def locked(self, value):
        self.set_locked(value)

    @property
    def baud_rate(self):
        return self.get_baud_rate()

    @baud_rate.setter
    def baud_rate(self, value):
        self.set_baud_rate(value)
