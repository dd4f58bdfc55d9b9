"""
The errors raised by the serial device, its worker and the transport.

Every error carries an ``identifier`` so callers (and the watchdog) can tell failures
apart without parsing messages.
"""


class SerialDeviceError(Exception):
    """ Base class for all serial device errors. """
    identifier = 'serialdevice'

    def __init__(self, *args, identifier=None):
        super().__init__(*args)
        if identifier is not None:
            self.identifier = identifier
        self.responses = None   # the full response list, when raised from a transaction

    @property
    def message(self):
        return str(self)


class ConfigurationError(SerialDeviceError):
    """ Missing or invalid construction arguments, or an unknown port. """
    identifier = 'serialdevice:configuration'


class InvalidDirectiveError(ConfigurationError):
    """ The worker does not recognise a directive, or its value is unacceptable. """
    identifier = 'serialdevice:directive'


class WorkerUnavailableError(SerialDeviceError):
    """ There is no running worker to handle a request. """
    identifier = 'serialdevice:worker'


class NotConnectedError(SerialDeviceError):
    """ A command was issued while the device is not connected. """
    identifier = 'serialdevice:not-connected'


class NotMonitoringError(SerialDeviceError):
    """ The status was read while monitoring is off. """
    identifier = 'serialdevice:not-monitoring'


class TransportError(SerialDeviceError):
    """ The serial port failed to open, configure, write or read. """
    identifier = 'serialdevice:transport'


class PortDisconnectedError(TransportError):
    """ The serial port went away underneath an open connection. """
    identifier = 'serialdevice:transport:disconnected'


class ReadTimeoutError(TransportError):
    """ No terminated reply arrived within the read timeout. """
    identifier = 'serialdevice:transport:timeout'


class ValidationError(SerialDeviceError):
    """ The validator rejected a reply from the device. """
    identifier = 'serialdevice:validation'


class StatusTimeoutError(SerialDeviceError):
    """ No status arrived within the allotted wait. """
    identifier = 'serialdevice:status-timeout'


class DeviceBusyError(SerialDeviceError):
    """ A command was submitted while another is outstanding. Logged, not raised. """
    identifier = 'serialdevice:busy'
