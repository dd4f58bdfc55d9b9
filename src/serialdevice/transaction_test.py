from unittest import TestCase
from unittest.mock import Mock, call

from hamcrest import assert_that, contains_string, instance_of, is_

from serialdevice.errors import PortDisconnectedError, ReadTimeoutError, TransportError, ValidationError
from serialdevice.messages import Command
from serialdevice.settings import DeviceSettings
from serialdevice.testing import FakeConduit
from serialdevice.transaction import TransactionExecutor, strip_eol


def copley_drive(payload):
    """ replies to register reads, stays silent for anything else """
    if payload == '0 g r0xa0x':
        return 'v 1234'
    if payload.startswith('0 g '):
        return 'v 0'
    return None


class TransactionExecutorTest(TestCase):

    def setUp(self):
        self.settings = DeviceSettings('/dev/ttyUSB0', terminator='CR', check_port=False)
        self.conduit = FakeConduit(copley_drive)
        self.sleep = Mock()
        self.sut = TransactionExecutor(self.conduit, self.settings, log=Mock(), sleep=self.sleep)

    def test_strip_eol(self):
        assert_that(strip_eol('v 1234\r', '\r'), is_('v 1234'))
        assert_that(strip_eol('v 1234\r\n', '\r\n'), is_('v 1234'))
        assert_that(strip_eol('v 1234', '\r'), is_('v 1234'))

    def test_round_trip(self):
        responses = self.sut.execute([Command('0 g r0xa0x')])
        assert_that(len(responses), is_(1))
        assert_that(responses[0].value, is_('v 1234'))
        assert_that(responses[0].failed, is_(False))
        assert_that(self.conduit.written, is_(['0 g r0xa0x']))

    def test_input_flushed_before_each_command(self):
        self.sut.execute([Command('0 g r0x01'), Command('0 g r0x02')])
        assert_that(self.conduit.flushes, is_(2))

    def test_no_reply_command(self):
        responses = self.sut.execute([Command('0 r', expects_reply=False)])
        assert_that(responses[0].value, is_(''))
        assert_that(responses[0].failed, is_(False))

    def test_one_response_per_command_in_order(self):
        responses = self.sut.execute([Command('0 g r0xa0x'), Command('0 g r0x01'), Command('0 r', False)])
        assert_that([r.value for r in responses], is_(['v 1234', 'v 0', '']))

    def test_timeout_recorded_and_transaction_continues(self):
        responses = self.sut.execute([Command('0 s r0x01 1'), Command('0 g r0xa0x')])
        assert_that(responses[0].error, instance_of(ReadTimeoutError))
        assert_that(responses[1].value, is_('v 1234'))

    def test_write_failure_is_a_transport_error(self):
        self.conduit.write_line = Mock(side_effect=OSError("boom"))
        responses = self.sut.execute([Command('x')])
        assert_that(responses[0].error, instance_of(TransportError))
        assert_that(responses[0].error.__cause__, instance_of(OSError))

    def test_disconnection_kept(self):
        self.conduit.unplug()
        responses = self.sut.execute([Command('0 g r0xa0x')])
        assert_that(responses[0].error, instance_of(PortDisconnectedError))

    def test_validator_rejects(self):
        def validator(line):
            if not line.startswith('v '):
                raise ValueError("not a value")

        self.settings.validator = validator
        self.conduit.device = lambda payload: 'e 32'
        responses = self.sut.execute([Command('0 g r0xa0x')])
        assert_that(responses[0].error, instance_of(ValidationError))
        assert_that(str(responses[0].error), contains_string("'e 32'"))

    def test_validator_accepts(self):
        self.settings.validator = Mock()
        self.sut.execute([Command('0 g r0xa0x')])
        self.settings.validator.assert_called_once_with('v 1234')

    def test_custom_reader_and_writer(self):
        self.settings.writer = Mock()
        self.settings.reader = Mock(return_value='ok\r')
        responses = self.sut.execute([Command('hello')])
        self.settings.writer.assert_called_once_with(self.conduit, 'hello')
        assert_that(responses[0].value, is_('ok'))

    def test_delays(self):
        self.settings.inter_command = 0.2
        self.settings.response_time = 0.05
        self.sut.execute([Command('0 g r0x01'), Command('0 g r0x02')])
        # response_time before each read, inter_command between but not after the last command
        assert_that(self.sleep.mock_calls, is_([call(0.05), call(0.2), call(0.05)]))

    def test_busy_while_executing(self):
        seen = []
        self.conduit.device = lambda payload: seen.append(self.sut.busy) or 'v 1'
        self.sut.execute([Command('a')])
        assert_that(seen, is_([True]))
        assert_that(self.sut.busy, is_(False))

    def test_locked_does_not_touch_guard(self):
        seen = []
        self.conduit.device = lambda payload: seen.append(self.sut.busy) or 'v 1'
        self.sut.execute([Command('a')], locked=True)
        assert_that(seen, is_([False]))

    def test_wait_until_idle(self):
        self.sut._busy.set()
        self.sleep.side_effect = lambda seconds: self.sut._busy.clear()
        self.sut.wait_until_idle(0.1)
        self.sleep.assert_called_once_with(0.1)

    def test_guard_released_on_error(self):
        self.sut._execute_one = Mock(side_effect=RuntimeError("bug"))
        try:
            self.sut.execute([Command('a')])
        except RuntimeError:
            pass
        assert_that(self.sut.busy, is_(False))
