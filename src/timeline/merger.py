"""
Multi-agent merge of coverage days.

Several agents see the same helpdesk queue, so the same ticket shows up in
each agent's coverage data. The merge keeps one copy per ticket per day,
marks it picked if ANY selected agent picked it, and embeds the identity of
the agent credited with the pick.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from src.timeline.store import AgentConfig, CoverageDay, TicketEvent

logger = logging.getLogger(__name__)

AgentDataset = Tuple[AgentConfig, Sequence[CoverageDay]]


def merge_agent_days(datasets: Sequence[AgentDataset]) -> List[CoverageDay]:
    """
    Union per-agent coverage days into one deduplicated dataset.

    Parameters
    ----------
    datasets : Sequence[AgentDataset]
        (agent, days) pairs in selection order

    Returns
    -------
    List[CoverageDay]
        One day per date, ascending, each ticket id at most once per day

    Notes
    -----
    When two different agents both claim a ticket, the first agent in
    selection order keeps the credit and the conflict is logged. There is no
    better tie-break available from the data.
    """
    merged: Dict[str, CoverageDay] = {}
    # Per day: ticket id -> merged ticket, and ticket id -> owning agent id
    seen: Dict[str, Dict[str, TicketEvent]] = {}
    owners: Dict[str, Dict[str, str]] = {}
    conflicts = 0

    for agent, days in datasets:
        for day in days:
            if day.date not in merged:
                merged[day.date] = replace(day, tickets=[], extended_tickets=[])
                seen[day.date] = {}
                owners[day.date] = {}
            target = merged[day.date]
            day_seen = seen[day.date]
            day_owners = owners[day.date]

            for source, bucket in (
                (day.tickets, target.tickets),
                (day.extended_tickets, target.extended_tickets),
            ):
                for ticket in source:
                    existing = day_seen.get(ticket.id)
                    if existing is None:
                        existing = replace(
                            ticket,
                            picked_by_tech=False,
                            owner_first_name=None,
                            owner_accent=None,
                        )
                        day_seen[ticket.id] = existing
                        bucket.append(existing)

                    if not ticket.picked_by_tech:
                        continue

                    owner_id = day_owners.get(ticket.id)
                    if owner_id is None:
                        existing.picked_by_tech = True
                        existing.owner_first_name = agent.first_name
                        existing.owner_accent = agent.accent
                        day_owners[ticket.id] = agent.id
                    elif owner_id != agent.id:
                        conflicts += 1
                        logger.warning(
                            f"DuplicateTicketOwnership: ticket {ticket.id} on {day.date} "
                            f"claimed by agent {agent.id} but already credited to "
                            f"agent {owner_id}; keeping first claim"
                        )

    result = [merged[d] for d in sorted(merged)]
    logger.info(
        f"Merged {len(datasets)} agent datasets into {len(result)} days "
        f"({sum(len(d.tickets) + len(d.extended_tickets) for d in result)} unique tickets, "
        f"{conflicts} ownership conflicts)"
    )
    return result


def flatten_days(days: Sequence[CoverageDay]) -> List[TicketEvent]:
    """
    Merge coverage and extended tickets of all days into one chronological list.

    Each ticket is copied with ``day`` and ``section`` set.
    """
    flattened: List[TicketEvent] = []
    for day in days:
        flattened.extend(replace(t, day=day.date, section="coverage") for t in day.tickets)
        flattened.extend(
            replace(t, day=day.date, section="extended") for t in day.extended_tickets
        )
    flattened.sort(key=lambda t: t.created_at)
    return flattened
