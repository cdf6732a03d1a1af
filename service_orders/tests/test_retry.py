"""
Unit tests for the retry policy.
"""

import pytest

from shared.retry import BACKOFF_FIXED, RetryConfig, calculate_delay


class TestRetryConfig:
    """Test cases for RetryConfig."""

    def test_defaults(self):
        """Test default policy."""
        config = RetryConfig()

        assert config.max_retries == 3
        assert config.max_attempts == 4
        assert config.base_delay == 2.0

    def test_exponential_delays(self):
        """Test doubling delays."""
        config = RetryConfig(max_retries=4, base_delay=0.5)

        assert [config.delay_for(i) for i in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_fixed_delays(self):
        """Test constant delays."""
        config = RetryConfig(base_delay=3.0, backoff_strategy=BACKOFF_FIXED)

        assert [calculate_delay(i, config) for i in range(3)] == [3.0, 3.0, 3.0]

    def test_max_delay_caps(self):
        """Test the delay cap."""
        config = RetryConfig(base_delay=1.0, max_delay=5.0)

        assert config.delay_for(10) == 5.0

    def test_jitter_within_ten_percent(self):
        """Test jitter bounds."""
        config = RetryConfig(base_delay=10.0, backoff_strategy=BACKOFF_FIXED, jitter=True)

        for _ in range(50):
            assert 9.0 <= config.delay_for(0) <= 11.0

    @pytest.mark.parametrize("kwargs", [
        {"max_retries": -1},
        {"base_delay": -0.1},
        {"backoff_strategy": "linear"},
    ])
    def test_invalid_config(self, kwargs):
        """Test argument validation."""
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)
