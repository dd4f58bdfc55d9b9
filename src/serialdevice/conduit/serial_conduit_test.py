import errno
import unittest
from unittest.mock import Mock, patch

from hamcrest import assert_that, calling, instance_of, is_, raises
from serial.serialutil import PortNotOpenError, SerialException

from serialdevice.conduit.serial_conduit import SerialConduit, check_port, is_disconnection, open_serial_conduit, \
    serial_ports, translate_error
from serialdevice.errors import ConfigurationError, PortDisconnectedError, ReadTimeoutError, TransportError


class SerialConduitTest(unittest.TestCase):

    def setUp(self):
        self.serial = Mock()
        self.serial.port = '/dev/ttyUSB0'
        self.serial.timeout = 2
        self.sut = SerialConduit(self.serial, 'CR')

    def test_properties(self):
        sut = self.sut
        assert_that(sut.target, is_(self.serial))
        assert_that(sut.eol, is_('\r'))
        self.serial.is_open = True
        assert_that(sut.is_open, is_(True))
        assert_that(sut.timeout, is_(2))
        assert_that(calling(setattr).with_args(sut, 'timeout', 1), raises(AttributeError))

    def test_write_line_appends_terminator(self):
        self.sut.write_line('0 g r0xa0x')
        self.serial.write.assert_called_once_with(b'0 g r0xa0x\r')

    def test_read_line(self):
        self.serial.read_until.return_value = b'v 1234\r'
        assert_that(self.sut.read_line(), is_('v 1234\r'))
        self.serial.read_until.assert_called_once_with(b'\r')

    def test_read_line_without_terminator_times_out(self):
        self.serial.read_until.return_value = b'v 12'
        assert_that(calling(self.sut.read_line), raises(ReadTimeoutError))

    def test_read_error_is_translated(self):
        self.serial.read_until.side_effect = SerialException("device reports readiness to read but returned no data "
                                                             "(device disconnected or multiple access on port?)")
        assert_that(calling(self.sut.read_line), raises(PortDisconnectedError))

    def test_write_error_is_translated(self):
        self.serial.write.side_effect = SerialException("write timeout")
        assert_that(calling(self.sut.write_line).with_args('x'), raises(TransportError, "write to /dev/ttyUSB0"))

    def test_flush_input(self):
        self.sut.flush_input()
        self.serial.reset_input_buffer.assert_called_once()

    def test_set_baudrate(self):
        self.sut.baudrate = 9600
        assert_that(self.serial.baudrate, is_(9600))

    def test_close(self):
        self.sut.close()
        self.serial.close.assert_called_once()

    def test_close_error_is_logged(self):
        self.serial.close.side_effect = OSError("gone")
        self.sut.close()

    def test_crlf(self):
        sut = SerialConduit(self.serial, 'CR/LF')
        sut.write_line('a')
        self.serial.write.assert_called_once_with(b'a\r\n')


class ErrorTranslationTest(unittest.TestCase):

    def test_disconnections(self):
        assert_that(is_disconnection(PortNotOpenError()), is_(True))
        assert_that(is_disconnection(OSError(errno.EIO, 'Input/output error')), is_(True))
        assert_that(is_disconnection(SerialException('could not open port: No such device')), is_(True))

    def test_not_disconnections(self):
        assert_that(is_disconnection(SerialException('write timeout')), is_(False))
        assert_that(is_disconnection(ValueError('not open')), is_(False))

    def test_translate(self):
        assert_that(translate_error(OSError(errno.ENXIO, 'x'), 'read'), instance_of(PortDisconnectedError))
        assert_that(translate_error(ValueError('bad'), 'read'), instance_of(TransportError))


class SerialPortsTest(unittest.TestCase):

    def test_function_serial_ports(self):
        with patch('serialdevice.conduit.serial_conduit.serial_port_info') as mock:
            mock.return_value = [(1, "1"), (2, "2")]
            ports = [p for p in serial_ports()]
            assert_that(ports, is_([1, 2]))

    def test_check_port(self):
        with patch('serialdevice.conduit.serial_conduit.serial_port_info') as mock:
            mock.return_value = [('/dev/ttyUSB0', 'usb')]
            assert_that(check_port('/dev/ttyUSB0'), is_('/dev/ttyUSB0'))
            assert_that(calling(check_port).with_args('/dev/ttyS9'),
                        raises(ConfigurationError, "Unknown device '/dev/ttyS9'"))

    def test_check_port_no_ports(self):
        with patch('serialdevice.conduit.serial_conduit.serial_port_info', return_value=[]):
            assert_that(calling(check_port).with_args('/dev/ttyUSB0'),
                        raises(ConfigurationError, "No serial ports on this machine"))

    def test_open_serial_conduit(self):
        with patch('serial.Serial') as serial_class:
            conduit = open_serial_conduit('/dev/ttyUSB0', 9600, 1.5, 'LF')
            serial_class.assert_called_once_with(port='/dev/ttyUSB0', baudrate=9600, timeout=1.5)
            assert_that(conduit.eol, is_('\n'))
            assert_that(conduit.target, is_(serial_class.return_value))

    def test_open_failure(self):
        with patch('serial.Serial', side_effect=SerialException("[Errno 2] could not open port: No such file")):
            assert_that(calling(open_serial_conduit).with_args('/dev/ttyUSB0', 9600, 1, 'CR'),
                        raises(TransportError, "open of /dev/ttyUSB0"))
