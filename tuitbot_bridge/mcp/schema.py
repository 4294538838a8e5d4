"""Data models for remote tools, tool-call results, outcomes, and safety metadata."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ToolCategory(str, Enum):
    """What a sidecar tool does to the world."""

    READ = "read"
    MUTATION = "mutation"
    COMPOSITE = "composite"
    OPERATIONAL = "ops"


class RiskLevel(str, Enum):
    """Risk of running a tool. Ordered low < medium < high (see ``catalog.RISK_ORDER``)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RemoteTool(BaseModel):
    """A tool advertised by the sidecar in a ``tools/list`` response."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


class ContentPart(BaseModel):
    """One element of a tool-call result's ``content`` array."""

    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: Optional[str] = None


class ToolCallResult(BaseModel):
    """Raw ``tools/call`` result: ``{content: [{type, text}], isError?}``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    content: List[ContentPart] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @property
    def primary_text(self) -> Optional[str]:
        """Text of the first content part, if any."""
        if not self.content:
            return None
        return self.content[0].text


class ToolOutcome(BaseModel):
    """
    Structured result of one tool invocation.

    A success carries ``data`` and optional ``meta``; a failure carries
    ``error_code``, ``error_message`` and optional ``retryable``. Exactly one
    of the two shapes is populated.
    """

    success: bool
    data: Any = None
    meta: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retryable: Optional[bool] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "ToolOutcome":
        if self.success:
            if self.error_code is not None or self.error_message is not None or self.retryable is not None:
                raise ValueError("successful outcome cannot carry error fields")
        else:
            if self.error_code is None or self.error_message is None:
                raise ValueError("failed outcome requires error_code and error_message")
            if self.data is not None or self.meta is not None:
                raise ValueError("failed outcome cannot carry data or meta")
        return self

    @classmethod
    def ok(cls, data: Any = None, meta: Optional[Dict[str, Any]] = None) -> "ToolOutcome":
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def fail(cls, error_code: str, error_message: str, retryable: Optional[bool] = None) -> "ToolOutcome":
        return cls(
            success=False,
            error_code=error_code,
            error_message=error_message,
            retryable=retryable,
        )


class CapabilityMeta(BaseModel):
    """Static safety metadata for a known sidecar tool."""

    model_config = ConfigDict(frozen=True)

    category: ToolCategory
    risk_level: RiskLevel
    requires_policy_check: bool = False

    @property
    def is_mutating(self) -> bool:
        """Mutations, and composites that need a policy check, change state."""
        return self.category is ToolCategory.MUTATION or (
            self.category is ToolCategory.COMPOSITE and self.requires_policy_check
        )

    @property
    def tag(self) -> str:
        """Bracketed prefix for host-facing descriptions, e.g. ``[mutation | policy-gated]``."""
        gated = " | policy-gated" if self.requires_policy_check else ""
        return f"[{self.category.value}{gated}]"


class BridgeFilterConfig(BaseModel):
    """Which discovered tools may be registered with the host. Unset fields don't constrain."""

    allowed_tools: Optional[List[str]] = None
    enable_mutations: bool = False
    allow_categories: Optional[List[ToolCategory]] = None
    deny_categories: Optional[List[ToolCategory]] = None
    max_risk_level: Optional[RiskLevel] = None
