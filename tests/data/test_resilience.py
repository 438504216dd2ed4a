"""Tests for error classification and retry logic."""

import sqlite3

import pytest

from trackr.data.resilience import ErrorCategory, classify_error, with_retry


class TestClassifyError:
    """Test error classification."""

    def test_unique_violation_message_is_conflict(self):
        err = Exception('duplicate key value violates unique constraint "activities_name_key"')
        assert classify_error(err) == ErrorCategory.CONFLICT

    def test_sqlite_integrity_error_is_conflict(self):
        err = sqlite3.IntegrityError("UNIQUE constraint failed: activities.name")
        assert classify_error(err) == ErrorCategory.CONFLICT

    def test_connection_refused_is_transient(self):
        err = ConnectionRefusedError("Connection refused")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_timeout_error_is_transient(self):
        err = TimeoutError("Operation timed out")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_os_error_is_transient(self):
        err = OSError("Network is unreachable")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_pool_closed_is_transient(self):
        err = Exception("pool is closed")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_auth_failure_is_permanent(self):
        err = Exception("password authentication failed for user")
        assert classify_error(err) == ErrorCategory.PERMANENT

    def test_missing_table_is_permanent(self):
        err = sqlite3.OperationalError("no such table: activities")
        assert classify_error(err) == ErrorCategory.PERMANENT

    def test_syntax_error_is_permanent(self):
        err = Exception("syntax error at or near SELECT")
        assert classify_error(err) == ErrorCategory.PERMANENT

    def test_unknown_error_defaults_to_transient(self):
        err = Exception("something completely unexpected")
        assert classify_error(err) == ErrorCategory.TRANSIENT


class TestWithRetry:
    """Test retry logic with exponential backoff."""

    @pytest.mark.asyncio
    async def test_success_on_first_try(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            return "ok"

        result = await with_retry(operation, max_retries=3, initial_delay=0.01)
        assert result == "ok"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_success_after_transient_failure(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionError("connection reset")
            return "ok"

        result = await with_retry(operation, max_retries=3, initial_delay=0.01)
        assert result == "ok"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise Exception("permission denied")

        with pytest.raises(Exception, match="permission denied"):
            await with_retry(operation, max_retries=3, initial_delay=0.01)

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise ConnectionError("always fails")

        with pytest.raises(ConnectionError):
            await with_retry(operation, max_retries=2, initial_delay=0.01)

        assert call_count == 3  # 1 initial + 2 retries

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        retries = []

        async def operation():
            raise ConnectionError("fail")

        def on_retry(attempt, delay, error):
            retries.append((attempt, delay))

        with pytest.raises(ConnectionError):
            await with_retry(
                operation, max_retries=2, initial_delay=0.01, on_retry=on_retry,
            )

        assert retries == [(1, 0.01), (2, 0.02)]
