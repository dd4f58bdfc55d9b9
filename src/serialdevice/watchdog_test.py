import threading
from unittest import TestCase
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, is_

from serialdevice.errors import PortDisconnectedError, ReadTimeoutError
from serialdevice.testing import debug_timeout
from serialdevice.watchdog import Watchdog


class WatchdogTest(TestCase):

    def setUp(self):
        self.device = Mock()
        self.device.settings.component_name = '_dev_ttyUSB0'
        self.device.port = '/dev/ttyUSB0'
        self.device.connected = True
        self.device.worker.running.return_value = True
        self.device.worker.alive = True
        self.device.take_unattached_exception.return_value = None
        self.sut = Watchdog(self.device, 0.01, log=Mock())

    def test_name(self):
        assert_that(self.sut.name, is_('Watchdog-_dev_ttyUSB0'))

    def test_healthy_worker_left_alone(self):
        assert_that(self.sut.tick(), is_(True))
        self.device.reconnect.assert_not_called()

    def test_nothing_checked_when_disconnected(self):
        self.device.connected = False
        self.device.worker = None
        self.sut.tick()
        self.device.reconnect.assert_not_called()
        self.device.take_unattached_exception.assert_not_called()

    def test_missing_worker_recovered(self):
        self.device.worker = None
        self.sut.tick()
        self.device.reconnect.assert_called_once_with("The worker looks dead", watchdog=self.sut)
        assert_that(self.sut.recoveries, is_(1))

    def test_stopped_worker_recovered(self):
        self.device.worker.running.return_value = False
        self.sut.tick()
        self.device.reconnect.assert_called_once_with("The worker looks dead", watchdog=self.sut)

    def test_dead_thread_recovered(self):
        self.device.worker.alive = False
        self.sut.tick()
        self.device.reconnect.assert_called_once_with("The worker thread looks dead", watchdog=self.sut)

    def test_disconnection_recovered(self):
        self.device.take_unattached_exception.return_value = PortDisconnectedError("gone")
        self.sut.tick()
        assert_that(self.device.reconnect.call_count, is_(1))
        assert_that(self.sut.recoveries, is_(1))

    def test_other_exceptions_only_logged(self):
        self.device.take_unattached_exception.return_value = ReadTimeoutError("slow")
        self.sut.tick()
        self.device.reconnect.assert_not_called()
        assert_that(self.sut.logger.warning.call_count, is_(1))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_overlapping_tick_dropped(self):
        entered = threading.Event()
        release = threading.Event()

        def slow_reconnect(reason, watchdog):
            entered.set()
            release.wait()

        self.device.worker = None
        self.device.reconnect.side_effect = slow_reconnect
        first = threading.Thread(target=self.sut.tick)
        first.start()
        entered.wait()
        assert_that(self.sut.tick(), is_(False))
        release.set()
        first.join(1)
        assert_that(self.device.reconnect.call_count, is_(1))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_ticks_periodically(self):
        ticked = threading.Event()
        self.device.take_unattached_exception.side_effect = lambda: ticked.set()
        self.sut.start()
        try:
            ticked.wait()
        finally:
            assert_that(self.sut.stop(1), is_(True))
