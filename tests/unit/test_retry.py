import pytest

from paybridge.errors import ConfigurationError
from paybridge.notifier.retry import RetryPolicy


class TestRetryPolicyBudget:
    """Tests for the attempt budget."""

    @pytest.mark.unit
    def test_default_is_three_attempts(self):
        assert RetryPolicy().max_attempts == 3

    @pytest.mark.unit
    @pytest.mark.parametrize("attempts", [0, 1, 2])
    def test_fewer_than_three_attempts_rejected(self, attempts):
        with pytest.raises(ConfigurationError):
            RetryPolicy(max_attempts=attempts)

    @pytest.mark.unit
    def test_larger_budget_allowed(self):
        assert RetryPolicy(max_attempts=5).max_attempts == 5

    @pytest.mark.unit
    def test_negative_delay_rejected(self):
        with pytest.raises(ConfigurationError):
            RetryPolicy(base_delay=-1)

    @pytest.mark.unit
    def test_attempts_remaining(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.has_attempts_remaining(1)
        assert policy.has_attempts_remaining(2)
        assert not policy.has_attempts_remaining(3)


class TestShouldRetry:

    @pytest.mark.unit
    def test_200_is_final(self):
        assert not RetryPolicy().should_retry(200)

    @pytest.mark.unit
    @pytest.mark.parametrize("status", [201, 204, 301, 400, 401, 404, 429, 500, 502, 503])
    def test_anything_else_retried(self, status):
        assert RetryPolicy().should_retry(status)

    @pytest.mark.unit
    def test_network_failure_retried(self):
        assert RetryPolicy().should_retry(None)


class TestBackoff:

    @pytest.mark.unit
    def test_linear_in_attempt_number(self):
        policy = RetryPolicy(base_delay=2, max_delay=30)
        assert policy.next_delay(1) == 2
        assert policy.next_delay(2) == 4
        assert policy.next_delay(3) == 6

    @pytest.mark.unit
    def test_capped_at_max_delay(self):
        policy = RetryPolicy(max_attempts=10, base_delay=10, max_delay=25)
        assert policy.next_delay(5) == 25

    @pytest.mark.unit
    def test_non_decreasing(self):
        policy = RetryPolicy(max_attempts=20, base_delay=3, max_delay=20)
        delays = [policy.next_delay(n) for n in range(1, 20)]
        assert delays == sorted(delays)
        assert max(delays) == 20

    @pytest.mark.unit
    def test_max_delay_never_below_base(self):
        policy = RetryPolicy(base_delay=5, max_delay=1)
        assert policy.next_delay(1) == 5

    @pytest.mark.unit
    def test_worst_case_delay_sums_waits_between_attempts(self):
        # Three attempts, two waits: 2s + 4s.
        assert RetryPolicy().worst_case_delay() == 6
