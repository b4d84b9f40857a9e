"""
Include/exclude filtering for timeline tickets.

Filtering is asymmetric on purpose:
- Picked tickets (handled by a selected agent) only ever see INCLUDE rules.
  An exclude rule never hides work an agent actually did.
- Not-picked (context) tickets see EXCLUDE rules first, then INCLUDE rules.

Keyword fields are ``|``-delimited OR lists, matched case-insensitively as
substrings of the ticket subject.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List

from src.timeline.store import TicketEvent


@dataclass(frozen=True)
class FilterState:
    """
    Current filter controls.

    Parameters
    ----------
    exclude_categories : FrozenSet[str]
        Categories hidden for not-picked tickets
    exclude_text : str
        ``|``-separated terms hiding not-picked tickets whose subject matches
    include_categories : FrozenSet[str]
        When non-empty, only these categories are shown
    include_text : str
        When non-empty, only subjects matching one of these terms are shown
    """

    exclude_categories: FrozenSet[str] = field(default_factory=frozenset)
    exclude_text: str = ""
    include_categories: FrozenSet[str] = field(default_factory=frozenset)
    include_text: str = ""

    def __post_init__(self) -> None:
        # Accept any iterable of categories from callers
        object.__setattr__(self, "exclude_categories", frozenset(self.exclude_categories or ()))
        object.__setattr__(self, "include_categories", frozenset(self.include_categories or ()))

    @property
    def is_active(self) -> bool:
        return bool(
            self.exclude_categories
            or self.include_categories
            or parse_terms(self.exclude_text)
            or parse_terms(self.include_text)
        )


def parse_terms(text: str) -> List[str]:
    """Parse a ``|``-delimited OR string into trimmed lowercase terms."""
    if not text or not text.strip():
        return []
    return [t.strip().lower() for t in text.split("|") if t.strip()]


def _passes_include(ticket: TicketEvent, filters: FilterState, haystack: str) -> bool:
    if filters.include_categories and ticket.category not in filters.include_categories:
        return False
    include_terms = parse_terms(filters.include_text)
    if include_terms and not any(term in haystack for term in include_terms):
        return False
    return True


def apply_picked_filters(ticket: TicketEvent, filters: FilterState) -> bool:
    """Return True if a picked ticket stays visible (include rules only)."""
    return _passes_include(ticket, filters, (ticket.subject or "").lower())


def apply_not_picked_filters(ticket: TicketEvent, filters: FilterState) -> bool:
    """Return True if a not-picked ticket stays visible (exclude, then include)."""
    haystack = (ticket.subject or "").lower()

    if filters.exclude_categories and ticket.category in filters.exclude_categories:
        return False
    exclude_terms = parse_terms(filters.exclude_text)
    if exclude_terms and any(term in haystack for term in exclude_terms):
        return False

    return _passes_include(ticket, filters, haystack)


def is_visible(ticket: TicketEvent, filters: FilterState) -> bool:
    """Dispatch on ``picked_by_tech`` to the matching rule set."""
    if ticket.picked_by_tech:
        return apply_picked_filters(ticket, filters)
    return apply_not_picked_filters(ticket, filters)


def filter_tickets(tickets: Iterable[TicketEvent], filters: FilterState) -> List[TicketEvent]:
    """Keep the visible tickets, preserving order."""
    return [t for t in tickets if is_visible(t, filters)]


def available_categories(tickets: Iterable[TicketEvent]) -> List[str]:
    """Sorted distinct categories, for populating filter controls."""
    return sorted({t.category for t in tickets if t.category})
