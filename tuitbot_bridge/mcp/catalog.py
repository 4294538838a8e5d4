"""
Static safety catalog for the tools exposed by ``tuitbot mcp serve``.

Maps each tool name to its category, risk level, and whether the sidecar
runs a policy check before executing it. Tools missing from the catalog are
not an error: they were added to the sidecar after this table was written
and pass the bridge filters by default.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from tuitbot_bridge.mcp.schema import CapabilityMeta, RiskLevel, ToolCategory

RISK_ORDER: Tuple[RiskLevel, ...] = (RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH)


def risk_at_most(level: RiskLevel, ceiling: RiskLevel) -> bool:
    """Return True if ``level`` is at or below ``ceiling``."""
    return RISK_ORDER.index(RiskLevel(level)) <= RISK_ORDER.index(RiskLevel(ceiling))


def _entries(
    names: List[str],
    category: ToolCategory,
    risk: RiskLevel,
    policy: bool,
) -> Dict[str, CapabilityMeta]:
    meta = CapabilityMeta(category=category, risk_level=risk, requires_policy_check=policy)
    return {name: meta for name in names}


_READ_TOOLS = [
    "get_stats",
    "get_follower_trend",
    "suggest_topics",
    "get_action_log",
    "get_action_counts",
    "get_rate_limits",
    "get_recent_replies",
    "get_reply_count_today",
    "list_target_accounts",
    "list_unreplied_tweets",
    "get_discovery_feed",
    "score_tweet",
    "list_pending_approvals",
    "get_pending_count",
    "get_config",
    "validate_config",
    "get_tweet_by_id",
    "x_get_user_by_username",
    "x_search_tweets",
    "x_get_user_mentions",
    "x_get_user_tweets",
    "get_author_context",
    "recommend_engagement_action",
    "topic_performance_snapshot",
    "generate_reply",
    "generate_tweet",
    "generate_thread",
]

_OPS_TOOLS = ["health_check", "get_mode", "get_capabilities", "get_policy_status"]

_CATALOG: Dict[str, CapabilityMeta] = {
    **_entries(_READ_TOOLS, ToolCategory.READ, RiskLevel.LOW, False),
    **_entries(_OPS_TOOLS, ToolCategory.OPERATIONAL, RiskLevel.LOW, False),
    **_entries(
        ["find_reply_opportunities", "draft_replies_for_candidates", "generate_thread_plan"],
        ToolCategory.COMPOSITE,
        RiskLevel.LOW,
        False,
    ),
    **_entries(["propose_and_queue_replies"], ToolCategory.COMPOSITE, RiskLevel.HIGH, True),
    **_entries(
        ["x_post_tweet", "x_reply_to_tweet", "x_quote_tweet", "approve_all"],
        ToolCategory.MUTATION,
        RiskLevel.HIGH,
        True,
    ),
    **_entries(
        ["x_like_tweet", "x_follow_user", "x_unfollow_user", "compose_tweet", "approve_item"],
        ToolCategory.MUTATION,
        RiskLevel.MEDIUM,
        True,
    ),
    **_entries(["reject_item"], ToolCategory.MUTATION, RiskLevel.LOW, True),
}

CATALOG: Mapping[str, CapabilityMeta] = MappingProxyType(_CATALOG)


def get_tool_meta(name: str) -> Optional[CapabilityMeta]:
    """Look up a tool's metadata. Returns None for tools the catalog doesn't know."""
    return CATALOG.get(name)


def catalog_entries() -> List[Tuple[str, CapabilityMeta]]:
    """All catalog entries, sorted by name."""
    return sorted(CATALOG.items())
