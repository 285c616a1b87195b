"""Namespace naming for a website's partitions in the hybrid index."""

from typing import Optional, Tuple, Union

from ..types import InteractionType

DEFAULT_INTERACTION_TYPE = InteractionType.DISCOUNTS

# Searched, in this order, when the interaction type is unknown.
FALLBACK_INTERACTION_TYPES: Tuple[InteractionType, ...] = (
    InteractionType.SALES,
    InteractionType.SUPPORT,
    InteractionType.DISCOUNTS,
)


def _interaction_value(interaction_type: Union[InteractionType, str, None]) -> str:
    if interaction_type is None or interaction_type == "":
        return DEFAULT_INTERACTION_TYPE.value
    if isinstance(interaction_type, InteractionType):
        return interaction_type.value
    return interaction_type


def namespace_for(website_id: str, interaction_type: Union[InteractionType, str, None] = None) -> str:
    """Content namespace ``"{website}-{interaction}"`` (``discounts`` by default)."""
    return f"{website_id}-{_interaction_value(interaction_type)}"


def qa_namespace(website_id: str, interaction_type: Union[InteractionType, str, None] = None) -> str:
    """Q&A namespace; ``"{website}-qa"`` for websites not split by interaction type."""
    if interaction_type is None:
        return f"{website_id}-qa"
    return f"{namespace_for(website_id, interaction_type)}-qa"


def website_namespace(website_id: str) -> str:
    """Single-partition namespace used by websites indexed before the split."""
    return str(website_id)


def is_unspecified(interaction_type: Optional[InteractionType]) -> bool:
    return interaction_type is InteractionType.NONE_SPECIFIED
