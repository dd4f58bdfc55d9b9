"""
Supervises a single line-oriented device on a serial port.

The SerialDevice facade hands requests to a worker thread that owns the port; a watchdog
rebuilds the connection when the worker dies or the port goes away.
"""
from serialdevice.device import SerialDevice
from serialdevice.errors import ConfigurationError, DeviceBusyError, InvalidDirectiveError, NotConnectedError, \
    NotMonitoringError, PortDisconnectedError, ReadTimeoutError, SerialDeviceError, StatusTimeoutError, \
    TransportError, ValidationError, WorkerUnavailableError
from serialdevice.messages import Command, Directive, DirectiveName, Response
from serialdevice.settings import DeviceSettings

__all__ = ['SerialDevice', 'DeviceSettings', 'Command', 'Response', 'Directive', 'DirectiveName',
           'SerialDeviceError', 'ConfigurationError', 'InvalidDirectiveError', 'WorkerUnavailableError',
           'NotConnectedError', 'NotMonitoringError', 'TransportError', 'PortDisconnectedError',
           'ReadTimeoutError', 'ValidationError', 'StatusTimeoutError', 'DeviceBusyError']
