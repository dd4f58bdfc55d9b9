from unittest import TestCase

from hamcrest import assert_that, instance_of, is_

from serialdevice.errors import ConfigurationError, InvalidDirectiveError, PortDisconnectedError, \
    SerialDeviceError, TransportError


class ErrorsTest(TestCase):

    def test_identifier_per_class(self):
        assert_that(PortDisconnectedError("gone").identifier, is_('serialdevice:transport:disconnected'))
        assert_that(InvalidDirectiveError().identifier, is_('serialdevice:directive'))

    def test_identifier_override(self):
        e = TransportError("x", identifier='custom')
        assert_that(e.identifier, is_('custom'))
        assert_that(TransportError("y").identifier, is_('serialdevice:transport'))

    def test_hierarchy(self):
        assert_that(InvalidDirectiveError(), instance_of(ConfigurationError))
        assert_that(PortDisconnectedError(), instance_of(TransportError))
        assert_that(TransportError(), instance_of(SerialDeviceError))

    def test_message_and_responses(self):
        e = SerialDeviceError("it broke")
        assert_that(e.message, is_("it broke"))
        assert_that(e.responses, is_(None))
