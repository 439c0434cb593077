"""
Tests for webhook security and rate limiting
"""

import hashlib
import hmac
import pytest

from call_ingest.api.middleware.rate_limit import RateLimiter
from call_ingest.api.middleware.webhook_security import VapiWebhookValidator
from call_ingest.core.exceptions import RateLimitError, WebhookValidationError


class TestVapiWebhookValidator:
    """Tests for HMAC signature checks"""

    BODY = b'{"type":"health-check"}'

    def _signature(self, secret="s3cret"):
        return hmac.new(secret.encode(), self.BODY, hashlib.sha256).hexdigest()

    def test_disabled_without_secret(self):
        """Test any request passes without a secret"""
        validator = VapiWebhookValidator(secret=None)
        assert validator.verify(self.BODY, None) is True

    @pytest.mark.parametrize("prefix", ["", "sha256=", "hmac-sha256="])
    def test_valid_signature(self, prefix):
        """Test accepted signature prefixes"""
        validator = VapiWebhookValidator(secret="s3cret")
        assert validator.verify(self.BODY, prefix + self._signature()) is True

    def test_uppercase_hex_is_accepted(self):
        """Test hex comparison ignores case"""
        validator = VapiWebhookValidator(secret="s3cret")
        assert validator.verify(self.BODY, self._signature().upper()) is True

    def test_missing_signature(self):
        """Test a missing header is rejected"""
        validator = VapiWebhookValidator(secret="s3cret")
        with pytest.raises(WebhookValidationError):
            validator.verify(self.BODY, None)

    def test_wrong_secret(self):
        """Test a signature from another secret is rejected"""
        validator = VapiWebhookValidator(secret="s3cret")
        with pytest.raises(WebhookValidationError) as exc_info:
            validator.verify(self.BODY, self._signature("other"))
        assert exc_info.value.status_code == 401

    def test_skipped_in_debug_development(self, app_settings):
        """Test validation is off in debug development"""
        dev = app_settings.model_copy(update={"debug": True, "environment": "development", "vapi_server_secret": "x"})
        validator = VapiWebhookValidator.from_settings(dev)

        assert validator.enabled is False
        assert validator.verify(self.BODY, None) is True


class TestRateLimiter:
    """Tests for the token bucket limiter"""

    def test_burst_then_reject(self, clock):
        """Test requests past the burst are rejected"""
        limiter = RateLimiter(requests_per_minute=60, burst_multiplier=1.0, clock=clock)
        for _ in range(60):
            limiter.check("10.0.0.1")

        with pytest.raises(RateLimitError) as exc_info:
            limiter.check("10.0.0.1")
        assert exc_info.value.details["retry_after_seconds"] >= 1

    def test_refill_over_time(self, clock):
        """Test tokens come back over time"""
        limiter = RateLimiter(requests_per_minute=60, burst_multiplier=1.0, clock=clock)
        for _ in range(60):
            limiter.check("10.0.0.1")

        clock.advance(1.0)
        limiter.check("10.0.0.1")

    def test_clients_are_independent(self, clock):
        """Test each client has its own bucket"""
        limiter = RateLimiter(requests_per_minute=1, burst_multiplier=1.0, clock=clock)
        limiter.check("a")
        limiter.check("b")

        with pytest.raises(RateLimitError):
            limiter.check("a")

    def test_idle_buckets_are_pruned(self, clock):
        """Test a full, idle bucket is dropped when a new client arrives"""
        limiter = RateLimiter(requests_per_minute=60, burst_multiplier=1.0, idle_seconds=60.0, clock=clock)
        limiter.check("10.0.0.1")
        limiter.check("10.0.0.2")

        clock.advance(30)
        limiter.check("10.0.0.3")
        assert set(limiter.buckets) == {"10.0.0.1", "10.0.0.2", "10.0.0.3"}

        clock.advance(31)
        limiter.check("10.0.0.4")
        assert set(limiter.buckets) == {"10.0.0.3", "10.0.0.4"}

    def test_drained_bucket_is_kept_until_refilled(self, clock):
        """Test pruning never resets a client that is still throttled"""
        limiter = RateLimiter(requests_per_minute=1, burst_multiplier=2.0, idle_seconds=1.0, clock=clock)
        limiter.check("a")
        limiter.check("a")

        # Refilling two tokens at one per minute takes 120 seconds
        clock.advance(30)
        limiter.check("b")

        assert "a" in limiter.buckets
        with pytest.raises(RateLimitError):
            limiter.check("a")

    def test_zero_disables(self, clock):
        """Test a zero limit disables limiting"""
        limiter = RateLimiter(requests_per_minute=0, clock=clock)
        for _ in range(1000):
            limiter.check("a")
        assert limiter.buckets == {}
