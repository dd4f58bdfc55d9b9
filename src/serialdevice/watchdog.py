"""
Checks on a connected device's worker and rebuilds the connection when the worker has died
or the port has gone away.
"""
import logging
import threading

from serialdevice.errors import PortDisconnectedError
from serialdevice.support.async_loop import AsyncLoop

logger = logging.getLogger(__name__)


class Watchdog(AsyncLoop):
    """
    Ticks every `period` seconds on its own thread.

    On each tick, and only while the device is connected:
    - a worker that is missing, stopped or whose thread has ended triggers a reconnect
    - otherwise an exception left by the worker outside any request is logged, and triggers
      a reconnect if it says the port was disconnected.

    Ticks never overlap: a tick that arrives while another is running is dropped.

    :param device: the SerialDevice being watched
    :param period: seconds between ticks
    """

    def __init__(self, device, period=5.0, log=logger):
        super().__init__(log=log, name="Watchdog-%s" % device.settings.component_name)
        self.device = device
        self.period = period
        self.recoveries = 0
        self._in_tick = threading.Lock()

    def loop(self):
        if self.wait(self.period):
            return
        self.tick()

    def tick(self):
        """
        Runs one check.
        :return: False if the tick was dropped because another was still running.
        """
        if not self._in_tick.acquire(blocking=False):
            self.logger.debug("previous check still running, tick dropped")
            return False
        try:
            self._check()
        finally:
            self._in_tick.release()
        return True

    def _check(self):
        device = self.device
        if not device.connected:
            return

        worker = device.worker
        if worker is None or not worker.running():
            self._recover("The worker looks dead")
            return
        if not worker.alive:
            self._recover("The worker thread looks dead")
            return

        error = device.take_unattached_exception()
        if error is None:
            return
        self.logger.warning("worker exception: [%s] %s" % (getattr(error, 'identifier', type(error).__name__), error))
        if isinstance(error, PortDisconnectedError):
            self._recover("Seems like '%s' has been disconnected" % device.port)

    def _recover(self, reason):
        self.recoveries += 1
        self.logger.warning("%s, reconnecting ..." % reason)
        self.device.reconnect(reason, watchdog=self)
