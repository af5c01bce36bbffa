"""Tests for shared enums."""

from __future__ import annotations

import pytest

from stackgraph.types import HANDLE_KIND_ORDER, Comparator, EnvironmentTier, HandleKind


class TestEnvironmentTier:
    @pytest.mark.parametrize("value,expected", [
        ("development", EnvironmentTier.DEVELOPMENT),
        ("dev", EnvironmentTier.DEVELOPMENT),
        (" Staging ", EnvironmentTier.STAGING),
        ("PROD", EnvironmentTier.PRODUCTION),
        (EnvironmentTier.PRODUCTION, EnvironmentTier.PRODUCTION),
    ])
    def test_parse(self, value, expected):
        assert EnvironmentTier.parse(value) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Valid tiers are: development, staging, production"):
            EnvironmentTier.parse("qa")

    def test_stage_names(self):
        assert [t.stage for t in EnvironmentTier] == ["dev", "staging", "prod"]

    def test_deployed_tiers(self):
        assert not EnvironmentTier.DEVELOPMENT.is_deployed_tier
        assert EnvironmentTier.STAGING.is_deployed_tier
        assert EnvironmentTier.PRODUCTION.is_deployed_tier


class TestHandleKind:
    def test_order_follows_declaration(self):
        assert sorted(HandleKind, key=HANDLE_KIND_ORDER.__getitem__) == list(HandleKind)
        assert HANDLE_KIND_ORDER[HandleKind.EDGE_CACHE] == 0


class TestComparator:
    def test_greater_than(self):
        assert Comparator.GT.breached(5, 4)
        assert not Comparator.GT.breached(4, 4)

    def test_less_than(self):
        assert Comparator.LT.breached(3, 4)
        assert not Comparator.LT.breached(4, 4)
