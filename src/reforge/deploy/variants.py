"""Variant resolution: agent -> pack subtree and destination layout."""

from typing import Dict, List, Union

from reforge.core.models import Agent, VariantLayout

_LAYOUTS: Dict[Agent, VariantLayout] = {
    Agent.COPILOT: VariantLayout(
        agent=Agent.COPILOT,
        archive_prefix="copilot/",
        documentation_file="AGENTS.md",
        agent_dir=".github",
        package_id="reforge-copilot-templates",
    ),
    Agent.CLAUDE: VariantLayout(
        agent=Agent.CLAUDE,
        archive_prefix="claude/",
        documentation_file="CLAUDE.md",
        agent_dir=".claude",
        package_id="reforge-claude-templates",
    ),
}


def resolve_variant(variant_id: Union[str, Agent]) -> VariantLayout:
    """Map a variant identifier to its layout.

    Raises:
        UnsupportedVariant: If the identifier is not a supported agent
    """
    return _LAYOUTS[Agent.parse(variant_id)]


def supported_variants() -> List[str]:
    return Agent.names()
