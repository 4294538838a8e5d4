"""Tests for the static tool safety catalog."""

from collections import Counter

import pytest

from tuitbot_bridge.mcp.catalog import CATALOG, RISK_ORDER, catalog_entries, get_tool_meta, risk_at_most
from tuitbot_bridge.mcp.schema import CapabilityMeta, RiskLevel, ToolCategory


class TestCatalogContents:
    """Tests for the catalog table."""

    def test_size(self):
        assert len(CATALOG) == 45

    def test_category_counts(self):
        counts = Counter(meta.category for meta in CATALOG.values())
        assert counts[ToolCategory.READ] == 27
        assert counts[ToolCategory.OPERATIONAL] == 4
        assert counts[ToolCategory.COMPOSITE] == 4
        assert counts[ToolCategory.MUTATION] == 10

    def test_every_mutation_is_policy_gated(self):
        for name, meta in CATALOG.items():
            if meta.category is ToolCategory.MUTATION:
                assert meta.requires_policy_check, name

    def test_known_entries(self):
        assert get_tool_meta("get_stats") == CapabilityMeta(category=ToolCategory.READ, risk_level=RiskLevel.LOW)
        assert get_tool_meta("x_post_tweet").risk_level is RiskLevel.HIGH
        assert get_tool_meta("x_like_tweet").risk_level is RiskLevel.MEDIUM
        assert get_tool_meta("reject_item").risk_level is RiskLevel.LOW
        assert get_tool_meta("health_check").category is ToolCategory.OPERATIONAL

    def test_policy_gated_composite(self):
        meta = get_tool_meta("propose_and_queue_replies")
        assert meta.category is ToolCategory.COMPOSITE
        assert meta.requires_policy_check
        assert meta.is_mutating

    def test_unknown_tool(self):
        assert get_tool_meta("future_tool_xyz") is None

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            CATALOG["new_tool"] = CapabilityMeta(category=ToolCategory.READ, risk_level=RiskLevel.LOW)

    def test_entries_sorted(self):
        names = [name for name, _ in catalog_entries()]
        assert names == sorted(CATALOG)


class TestCapabilityMeta:
    """Tests for derived CapabilityMeta properties."""

    def test_tags(self):
        assert get_tool_meta("get_stats").tag == "[read]"
        assert get_tool_meta("get_mode").tag == "[ops]"
        assert get_tool_meta("x_post_tweet").tag == "[mutation | policy-gated]"

    def test_plain_composite_is_not_mutating(self):
        assert not get_tool_meta("find_reply_opportunities").is_mutating

    def test_read_is_not_mutating(self):
        assert not get_tool_meta("get_stats").is_mutating

    def test_mutation_is_mutating(self):
        assert get_tool_meta("reject_item").is_mutating


class TestRiskOrder:
    """Tests for risk comparison."""

    def test_order(self):
        assert RISK_ORDER == (RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH)

    @pytest.mark.parametrize("level,ceiling,expected", [
        (RiskLevel.LOW, RiskLevel.LOW, True),
        (RiskLevel.MEDIUM, RiskLevel.LOW, False),
        (RiskLevel.MEDIUM, RiskLevel.HIGH, True),
        (RiskLevel.HIGH, RiskLevel.MEDIUM, False),
        ("high", "high", True),
    ])
    def test_risk_at_most(self, level, ceiling, expected):
        assert risk_at_most(level, ceiling) is expected
