"""
Unit tests for digest_core.utils.retry.

Tests the exponential backoff retry decorator for sync and async callables.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from digest_core.utils.retry import compute_backoff_delay, retry_with_exponential_backoff


@pytest.fixture
def no_sleep():
    """Patch both sleeps so retries run instantly."""
    with patch("digest_core.utils.retry.time.sleep") as sync_sleep, \
            patch("digest_core.utils.retry.asyncio.sleep", new=AsyncMock()) as async_sleep:
        yield sync_sleep, async_sleep


class TestComputeBackoffDelay:
    def test_exponential_growth(self):
        assert [compute_backoff_delay(a, 1.0, 2.0, 30.0) for a in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        assert compute_backoff_delay(10, 1.0, 2.0, 30.0) == 30.0


class TestRetryWithExponentialBackoff:
    """Test retry_with_exponential_backoff on plain functions."""

    def test_successful_first_attempt(self, no_sleep):
        mock_fn = Mock(return_value="success")

        @retry_with_exponential_backoff(max_retries=3)
        def test_function():
            return mock_fn()

        assert test_function() == "success"
        assert mock_fn.call_count == 1
        no_sleep[0].assert_not_called()

    def test_retry_on_failure(self, no_sleep):
        mock_fn = Mock(side_effect=[Exception("Fail 1"), Exception("Fail 2"), "success"])

        @retry_with_exponential_backoff(max_retries=3, base_delay=0.1)
        def test_function():
            return mock_fn()

        assert test_function() == "success"
        assert mock_fn.call_count == 3

    def test_max_retries_exceeded(self, no_sleep):
        mock_fn = Mock(side_effect=Exception("Always fails"))

        @retry_with_exponential_backoff(max_retries=3, base_delay=0.1)
        def test_function():
            return mock_fn()

        with pytest.raises(Exception, match="Always fails"):
            test_function()

        # initial + 3 retries
        assert mock_fn.call_count == 4

    def test_delays_passed_to_sleep(self, no_sleep):
        sync_sleep, _ = no_sleep
        mock_fn = Mock(
            side_effect=[Exception("Fail 1"), Exception("Fail 2"), Exception("Fail 3"), "success"]
        )

        @retry_with_exponential_backoff(max_retries=3, base_delay=10.0, max_delay=15.0)
        def test_function():
            return mock_fn()

        assert test_function() == "success"
        assert [c.args[0] for c in sync_sleep.call_args_list] == [10.0, 15.0, 15.0]

    def test_non_retryable_exception(self, no_sleep):
        mock_fn = Mock(side_effect=TypeError("Not retryable"))

        @retry_with_exponential_backoff(max_retries=3, exceptions=(ValueError,))
        def test_function():
            return mock_fn()

        with pytest.raises(TypeError, match="Not retryable"):
            test_function()
        assert mock_fn.call_count == 1

    def test_retry_condition(self, no_sleep):
        mock_fn = Mock(side_effect=[Exception("Please retry"), Exception("Do not retry")])

        @retry_with_exponential_backoff(
            max_retries=3, retry_condition=lambda e: "please" in str(e).lower()
        )
        def test_function():
            return mock_fn()

        with pytest.raises(Exception, match="Do not retry"):
            test_function()
        assert mock_fn.call_count == 2

    def test_on_retry_callback(self, no_sleep):
        retry_info = []
        mock_fn = Mock(side_effect=[Exception("Fail 1"), Exception("Fail 2"), "success"])

        @retry_with_exponential_backoff(
            max_retries=3, base_delay=1.0, on_retry=lambda e, a, d: retry_info.append((a, d))
        )
        def test_function():
            return mock_fn()

        assert test_function() == "success"
        assert retry_info == [(1, 1.0), (2, 2.0)]

    def test_on_retry_callback_failure(self, no_sleep, caplog):
        def failing_callback(e, attempt, delay):
            raise Exception("Callback failed")

        mock_fn = Mock(side_effect=[Exception("Fail 1"), "success"])

        @retry_with_exponential_backoff(max_retries=3, on_retry=failing_callback)
        def test_function():
            return mock_fn()

        with caplog.at_level("ERROR"):
            assert test_function() == "success"
        assert "Retry callback failed" in caplog.text

    def test_api_key_sanitization_in_logs(self, no_sleep, caplog):
        mock_fn = Mock(side_effect=[Exception("API error: sk-proj-abcdefghijklmnopqrstuvwx"), "success"])

        @retry_with_exponential_backoff(max_retries=2)
        def test_function():
            return mock_fn()

        with caplog.at_level("WARNING"):
            assert test_function() == "success"
        assert "sk-***" in caplog.text
        assert "abcdefghijklmnopqrstuvwx" not in caplog.text

    def test_zero_retries(self, no_sleep):
        mock_fn = Mock(side_effect=Exception("Fail"))

        @retry_with_exponential_backoff(max_retries=0)
        def test_function():
            return mock_fn()

        with pytest.raises(Exception, match="Fail"):
            test_function()
        assert mock_fn.call_count == 1

    def test_preserves_function_metadata(self):
        @retry_with_exponential_backoff(max_retries=3)
        def my_function():
            """This is my function."""
            return "result"

        assert my_function.__name__ == "my_function"
        assert my_function.__doc__ == "This is my function."


class TestAsyncRetry:
    """The decorator awaits coroutine functions and sleeps with asyncio."""

    @pytest.mark.asyncio
    async def test_async_retry_then_success(self, no_sleep):
        _, async_sleep = no_sleep
        mock_fn = AsyncMock(side_effect=[ConnectionError("reset"), "ok"])

        @retry_with_exponential_backoff(max_retries=2, base_delay=0.5)
        async def call_api():
            return await mock_fn()

        assert await call_api() == "ok"
        assert mock_fn.await_count == 2
        async_sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_async_gives_up(self, no_sleep):
        mock_fn = AsyncMock(side_effect=ConnectionError("down"))

        @retry_with_exponential_backoff(max_retries=2)
        async def call_api():
            return await mock_fn()

        with pytest.raises(ConnectionError):
            await call_api()
        assert mock_fn.await_count == 3
