import math
from unittest import TestCase

from hamcrest import assert_that, calling, is_, raises

from serialdevice.support.retry_strategy import CountedRetryStrategy, PeriodRetryStrategy, RetryStrategy


class RetryStrategyTest(TestCase):
    def test_is_zero(self):
        assert_that(RetryStrategy()(), is_(0))


class PeriodRetryStrategyTest(TestCase):

    def setUp(self):
        self.retry_period = 60

    def test_will_retry_immediately_by_default(self):
        retry = PeriodRetryStrategy(self.retry_period)
        time = 123
        assert_that(retry(time), is_(0))
        assert_that(retry(time), is_(self.retry_period))

    def test_dry_run_does_not_advance(self):
        retry = PeriodRetryStrategy(self.retry_period)
        time = 123
        assert_that(retry(time, dryRun=True), is_(0))
        assert_that(retry(time), is_(0))
        assert_that(retry(time), is_(self.retry_period))

    def test_time_decreases_and_restarts(self):
        retry = PeriodRetryStrategy(self.retry_period)
        assert_that(retry(0), is_(0))       # 0, so period restarts
        assert_that(retry(50), is_(10))
        assert_that(retry(55), is_(5))
        assert_that(retry(65), is_(-5))     # <0, restart, without accumulating the overshoot
        assert_that(retry(65), is_(60))

    def test_due(self):
        retry = PeriodRetryStrategy(self.retry_period)
        assert_that(retry.due(10), is_(True))
        retry.touch(10)
        assert_that(retry.due(69), is_(False))
        assert_that(retry.due(70), is_(True))

    def test_touch_restarts_period(self):
        retry = PeriodRetryStrategy(self.retry_period, last_tried=0)
        retry.touch(50)
        assert_that(retry(100, dryRun=True), is_(10))


class CountedRetryStrategyTest(TestCase):

    def test_bounded_attempts(self):
        retry = CountedRetryStrategy(3, 2)
        assert_that(list(retry.attempts()), is_([1, 2, 3]))
        assert_that(retry.is_last(2), is_(False))
        assert_that(retry.is_last(3), is_(True))
        assert_that(retry(), is_(2))

    def test_unbounded_attempts(self):
        retry = CountedRetryStrategy(math.inf, 5)
        assert_that(retry.unbounded, is_(True))
        attempts = retry.attempts()
        assert_that([next(attempts) for _ in range(1000)][-1], is_(1000))
        assert_that(retry.is_last(10 ** 9), is_(False))

    def test_float_retries(self):
        retry = CountedRetryStrategy(2.0)
        assert_that(list(retry.attempts()), is_([1, 2]))

    def test_at_least_one_attempt(self):
        assert_that(calling(CountedRetryStrategy).with_args(0), raises(ValueError))
