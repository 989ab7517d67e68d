# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Tier capability policy and enforcement for GhostChat.

Each license tier unlocks a set of themes, providers and context modes:
- free: basic themes, one provider, no page context
- personal: extra themes, GPT-4 and Claude, FAQ/summary context
- agency: everything, including the full-site crawl

Policies are built cumulatively so every tier is a superset of the tier
below it. Enforcement narrows a requested configuration to what the
resolved tier allows. Enforcement is advisory: it keeps honest embedders
inside their plan, it is not a security boundary.

Version: 1.0.0
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ghostchat.config import WidgetConfig

logger = logging.getLogger(__name__)


FALLBACK_THEME = "minimal-light"
BASELINE_PROVIDER = "openai:gpt-3.5"


class Tier(Enum):
    """License tier, ordered from least to most capable."""

    FREE = "free"
    PERSONAL = "personal"
    AGENCY = "agency"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other: "Tier") -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "Tier") -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank <= other.rank

    @classmethod
    def from_name(cls, value: Optional[str]) -> Optional["Tier"]:
        """
        Look up a tier name as returned by the license server.

        Matching ignores case and surrounding whitespace. Unknown, empty
        or non-string names yield None.
        """
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_TIER_ORDER = (Tier.FREE, Tier.PERSONAL, Tier.AGENCY)


class ContextMode(Enum):
    """How page content is turned into conversation context."""

    FAQ = "faq"
    SUMMARIZE = "summarize"
    FULL_SCRAPE = "full_scrape"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ContextMode"]:
        """Parse a mode name; unknown names yield None."""
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown context mode '{value}' ignored")
            return None


@dataclass(frozen=True)
class CapabilityPolicy:
    """
    What a tier is allowed to use.

    Attributes:
        themes: Allowed theme identifiers
        providers: Allowed provider selectors
        context_modes: Allowed context acquisition modes
    """

    themes: frozenset
    providers: frozenset
    context_modes: frozenset

    def extend(
        self,
        themes: tuple = (),
        providers: tuple = (),
        context_modes: tuple = (),
    ) -> "CapabilityPolicy":
        """Return a policy holding everything in this one plus additions."""
        return CapabilityPolicy(
            themes=self.themes | frozenset(themes),
            providers=self.providers | frozenset(providers),
            context_modes=self.context_modes | frozenset(context_modes),
        )

    def includes(self, other: "CapabilityPolicy") -> bool:
        """True if this policy is a superset of `other`."""
        return (
            self.themes >= other.themes
            and self.providers >= other.providers
            and self.context_modes >= other.context_modes
        )


# =============================================================================
# Policy Table
# =============================================================================

_FREE_POLICY = CapabilityPolicy(
    themes=frozenset({FALLBACK_THEME, "minimal-dark"}),
    providers=frozenset({BASELINE_PROVIDER}),
    context_modes=frozenset(),
)

_PERSONAL_POLICY = _FREE_POLICY.extend(
    themes=("glassmorphism", "terminal-console"),
    providers=("openai:gpt-4", "anthropic:claude"),
    context_modes=(ContextMode.FAQ, ContextMode.SUMMARIZE),
)

_AGENCY_POLICY = _PERSONAL_POLICY.extend(
    themes=("ghost-orb",),
    providers=(
        "openai:gpt-4-turbo",
        "anthropic:claude-opus",
        "google:gemini",
        "ollama",
        "webllm",
    ),
    context_modes=(ContextMode.FULL_SCRAPE,),
)

TIER_POLICIES = {
    Tier.FREE: _FREE_POLICY,
    Tier.PERSONAL: _PERSONAL_POLICY,
    Tier.AGENCY: _AGENCY_POLICY,
}


def policy_for(tier: Tier) -> CapabilityPolicy:
    """Get the capability policy for a tier."""
    return TIER_POLICIES[tier]


# =============================================================================
# Enforcement
# =============================================================================


def enforce_tier(config: "WidgetConfig", tier: Tier) -> "WidgetConfig":
    """
    Narrow a widget configuration to what `tier` allows.

    Pure and idempotent: the input is not modified and enforcing an
    already-enforced configuration returns an equal configuration.

    Args:
        config: Requested configuration
        tier: Resolved license tier

    Returns:
        A configuration whose theme, provider and context mode are all
        permitted for the tier.
    """
    policy = policy_for(tier)
    changes = {}

    if config.theme not in policy.themes:
        logger.warning(
            f"Theme '{config.theme}' not allowed for {tier.value} tier. "
            f"Using {FALLBACK_THEME}."
        )
        changes["theme"] = FALLBACK_THEME

    if config.provider not in policy.providers:
        logger.warning(
            f"Provider '{config.provider}' not allowed for {tier.value} tier. "
            f"Using {BASELINE_PROVIDER}."
        )
        changes["provider"] = BASELINE_PROVIDER

    if config.context_mode is not None:
        # Free tier has no context feature at all, whatever the table says
        if tier is Tier.FREE:
            logger.warning("Context modes not available in free tier")
            changes["context_mode"] = None
        elif config.context_mode not in policy.context_modes:
            logger.warning(
                f"Context mode '{config.context_mode.value}' not allowed for "
                f"{tier.value} tier"
            )
            changes["context_mode"] = None

    if not changes:
        return config
    return replace(config, **changes)
