import itertools
import math
import time

from serialdevice.support.mixins import CommonEqualityMixin


class RetryStrategy:
    def __call__(self):
        return 0


class PeriodRetryStrategy(RetryStrategy, CommonEqualityMixin):
    """
    Tracks when an operation was last performed and how long remains until it is due again.
    The worker uses this to schedule status polls relative to the last device interaction.
    """

    def __init__(self, retry_period, last_tried=None):
        """
        :param retry_period: The retry period in seconds.
        """
        self.last_tried = last_tried         # the time last tried
        self.retry_period = retry_period

    def __call__(self, current_time=None, dryRun=False):
        """return the length of time until an operation should be retried
            :param dryRun: when True, the last tried time is not updated
        """
        if current_time is None:
            current_time = time.time()
        result = self._time_to_retry(current_time)
        if not dryRun and result <= 0:
            self.last_tried = current_time
        return result

    def due(self, current_time=None):
        """ True when the period has elapsed, without recording a try. """
        return self(current_time, dryRun=True) <= 0

    def touch(self, current_time=None):
        """ records an operation at the given time (now by default), restarting the period. """
        self.last_tried = time.time() if current_time is None else current_time

    def _time_to_retry(self, current_time):
        """
        Determines how long until the next try
        :param current_time: The current time.
        :return: the seconds remaining. Zero or negative means the operation is due.
        """
        return 0 if self.last_tried is None else self.retry_period - (current_time - self.last_tried)


class CountedRetryStrategy(RetryStrategy, CommonEqualityMixin):
    """
    A fixed number of attempts (possibly unbounded) separated by a fixed delay.

    :param retries: how many attempts to make. math.inf means keep trying.
    :param retry_delay: seconds to wait between attempts.
    """

    def __init__(self, retries, retry_delay=0):
        if retries < 1:
            raise ValueError("retries must be at least 1, not %s" % retries)
        self.retries = retries
        self.retry_delay = retry_delay

    @property
    def unbounded(self):
        return math.isinf(self.retries)

    def attempts(self):
        """ yields the 1-based attempt numbers """
        return itertools.count(1) if self.unbounded else iter(range(1, int(self.retries) + 1))

    def is_last(self, attempt):
        return not self.unbounded and attempt >= self.retries

    def __call__(self):
        return self.retry_delay
