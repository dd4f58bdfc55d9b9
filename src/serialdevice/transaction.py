"""
Runs transactions - ordered lists of commands - against a conduit.
"""
import logging
import threading
import time
from datetime import datetime

from serialdevice.errors import SerialDeviceError, TransportError, ValidationError
from serialdevice.messages import Response

logger = logging.getLogger(__name__)


def strip_eol(line, eol):
    """
    Removes the line terminator from the end of a reply.
    >>> strip_eol('v 1234\\r', '\\r')
    'v 1234'
    >>> strip_eol('v 1234', '\\r')
    'v 1234'
    """
    return line[:-len(eol)] if eol and line.endswith(eol) else line


class TransactionExecutor:
    """
    Sends commands to the device one after the other, collecting one Response per command.

    A failure to write, read or validate is recorded in that command's Response and the
    transaction carries on with the next command.

    While a transaction runs the busy guard is held, unless the caller says the device is locked:
    a locked caller already holds the device exclusively (e.g. a multi-step maintenance sequence.)

    :param conduit: the open conduit to the device
    :param settings: the DeviceSettings providing the validator, reader, writer and delays
    """

    def __init__(self, conduit, settings, log=logger, sleep=time.sleep):
        self.conduit = conduit
        self.settings = settings
        self.logger = log
        self._sleep = sleep
        self._busy = threading.Event()

    @property
    def busy(self):
        return self._busy.is_set()

    def wait_until_idle(self, poll=0.1, label=''):
        """ busy-polls until no transaction holds the guard """
        while self._busy.is_set():
            self.logger.debug("%sdevice is busy" % label)
            self._sleep(poll)

    def execute(self, commands, locked=False):
        """
        Runs the commands as one transaction.
        :param commands: the Commands, in order
        :param locked: when True the busy guard is neither taken nor released
        :return: a list of Responses, one per command, in the same order
        """
        if not locked:
            self._busy.set()    # guard ON
        try:
            responses = []
            last = len(commands) - 1
            for index, command in enumerate(commands):
                responses.append(self._execute_one(index, command))
                if self.settings.inter_command and index != last:
                    self._sleep(self.settings.inter_command)
            return responses
        finally:
            if not locked:
                self._busy.clear()  # guard OFF

    def _execute_one(self, index, command):
        conduit = self.conduit
        settings = self.settings
        start = time.monotonic()
        try:
            conduit.flush_input()
            if settings.writer is not None:
                settings.writer(conduit, command.payload)
            else:
                conduit.write_line(command.payload)
        except Exception as e:
            self.logger.debug("command(%d): '%s' write failed: %s" % (index, command.payload, e))
            return Response.of_error(self._as_transport_error(e))

        if not command.expects_reply:
            self.logger.debug("command(%d): %15s (no-reply) (%.3fs)" %
                              (index, "'%s'" % command.payload, time.monotonic() - start))
            return Response('', None, datetime.now())

        try:
            if settings.response_time:
                self._sleep(settings.response_time)
            line = settings.reader(conduit) if settings.reader is not None else conduit.read_line()
        except Exception as e:
            self.logger.debug("command(%d): '%s' (exception: '%s')" % (index, command.payload, e))
            return Response.of_error(self._as_transport_error(e))

        line = strip_eol(line, conduit.eol)
        if settings.validator is not None:
            try:
                settings.validator(line)
            except Exception as e:
                error = e if isinstance(e, SerialDeviceError) else ValidationError(
                    "reply '%s' to '%s' rejected: %s" % (line, command.payload, e))
                self.logger.debug("command(%d): '%s' reply '%s' rejected: %s" % (index, command.payload, line, e))
                return Response.of_error(error)

        self.logger.debug("command(%d): %15s, reply: '%s' (%.3fs)" %
                          (index, "'%s'" % command.payload, line, time.monotonic() - start))
        return Response(line, None, datetime.now())

    @staticmethod
    def _as_transport_error(e):
        if isinstance(e, SerialDeviceError):
            return e
        error = TransportError(str(e))
        error.__cause__ = e
        return error
