"""
Tests for realtycore/api/health.py — health check endpoints (liveness, readiness).
"""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch

from realtycore.api.health import VERSION, health_check, readiness_check


# ---------------------------------------------------------------------------
# GET /health — basic liveness
# ---------------------------------------------------------------------------


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_returns_healthy(self):
        """Liveness check always returns healthy with timestamp and version."""
        result = await health_check()
        assert result["status"] == "healthy"
        assert result["version"] == VERSION
        assert "timestamp" in result

    @pytest.mark.asyncio
    async def test_timestamp_is_utc_iso(self):
        """Timestamp should be parseable ISO format."""
        result = await health_check()
        parsed = datetime.fromisoformat(result["timestamp"])
        assert parsed.tzinfo is not None


# ---------------------------------------------------------------------------
# GET /health/ready — readiness check (DB + Redis)
# ---------------------------------------------------------------------------


class TestReadinessCheck:
    @pytest.mark.asyncio
    async def test_all_healthy_returns_ready(self):
        """When both DB and Redis are healthy, status is 'ready'."""
        mock_db = AsyncMock()
        mock_db.execute = AsyncMock()

        mock_redis = AsyncMock()
        mock_redis.ping = AsyncMock(return_value=True)

        with patch("realtycore.utils.dedup.get_redis", new_callable=AsyncMock, return_value=mock_redis):
            result = await readiness_check(db=mock_db)

        assert result["status"] == "ready"
        assert result["checks"]["database"] is True
        assert result["checks"]["redis"] is True

    @pytest.mark.asyncio
    async def test_redis_failure_returns_degraded(self):
        """Routing works without Redis, so a Redis outage is 'degraded'."""
        mock_db = AsyncMock()
        mock_db.execute = AsyncMock()

        with patch(
            "realtycore.utils.dedup.get_redis",
            new_callable=AsyncMock,
            side_effect=Exception("redis down"),
        ):
            result = await readiness_check(db=mock_db)

        assert result["status"] == "degraded"
        assert result["checks"]["database"] is True
        assert result["checks"]["redis"] is False

    @pytest.mark.asyncio
    async def test_db_failure_returns_unavailable(self):
        """Without the database nothing can be served."""
        mock_db = AsyncMock()
        mock_db.execute = AsyncMock(side_effect=Exception("connection refused"))

        mock_redis = AsyncMock()
        mock_redis.ping = AsyncMock(return_value=True)

        with patch("realtycore.utils.dedup.get_redis", new_callable=AsyncMock, return_value=mock_redis):
            result = await readiness_check(db=mock_db)

        assert result["status"] == "unavailable"
        assert result["checks"]["database"] is False
        assert result["checks"]["redis"] is True
