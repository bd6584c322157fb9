"""Tests for retry with exponential backoff."""

from unittest.mock import Mock

import pytest

from sitepush.transfer.retry import backoff_delays, with_retry


class TestWithRetry:
    """Tests for with_retry()."""

    def test_success_first_try(self) -> None:
        """Should not sleep after a successful call."""
        sleeps: list[float] = []
        result = with_retry("op", 3, 1.0, lambda: 42, sleep=sleeps.append)
        assert result == 42
        assert sleeps == []

    def test_success_after_failures(self) -> None:
        """Should return the result of the first successful attempt."""
        work = Mock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        sleeps: list[float] = []

        assert with_retry("op", 3, 0.5, work, sleep=sleeps.append) == "ok"
        assert work.call_count == 3
        assert sleeps == [0.5, 1.0]

    def test_exhaustion_reraises_last_error(self) -> None:
        """Should propagate the last error after max_retries + 1 failures."""
        errors = [ConnectionError(f"fail {i}") for i in range(4)]
        work = Mock(side_effect=errors)
        sleeps: list[float] = []

        with pytest.raises(ConnectionError) as exc_info:
            with_retry("op", 3, 1.0, work, sleep=sleeps.append)

        assert exc_info.value is errors[-1]
        assert work.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]

    def test_zero_retries_single_attempt(self) -> None:
        """Should make exactly one attempt with max_retries=0."""
        work = Mock(side_effect=OSError("down"))
        sleeps: list[float] = []
        with pytest.raises(OSError):
            with_retry("op", 0, 1.0, work, sleep=sleeps.append)
        assert work.call_count == 1
        assert sleeps == []

    def test_negative_retries_rejected(self) -> None:
        """Should reject a negative retry budget."""
        with pytest.raises(ValueError):
            with_retry("op", -1, 1.0, lambda: None)


class TestBackoffDelays:
    """Tests for backoff_delays()."""

    def test_doubles(self) -> None:
        """Should double each delay."""
        assert backoff_delays(4, 0.25) == [0.25, 0.5, 1.0, 2.0]

    def test_no_retries(self) -> None:
        """Should return no delays without retries."""
        assert backoff_delays(0, 1.0) == []
