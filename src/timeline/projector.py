"""
Combined view: all days projected onto one time-of-day axis.

Weekly and monthly periods can be read as "what does a typical day look
like": every ticket is placed by its wall-clock time in the reference zone,
ignoring the calendar date, with hour separators and each shift boundary
marked once.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from src.timeline.markers import agent_end_marker, agent_start_marker
from src.timeline.settings import Settings
from src.timeline.store import AgentConfig, CoverageDay, Marker, TicketEvent, TicketItem, TimelineItem
from src.timeline.timezones import (
    hour_label,
    local_time_to_utc,
    parse_time_string,
    to_zone_date_str,
    to_zone_time_of_day,
)

logger = logging.getLogger(__name__)


def build_combined_timeline(
    tickets: Sequence[TicketEvent],
    agents: Sequence[AgentConfig],
    days: Sequence[CoverageDay],
    settings: Optional[Settings] = None,
) -> List[TimelineItem]:
    """
    Build the combined (time-of-day) timeline.

    Parameters
    ----------
    tickets : Sequence[TicketEvent]
        Visible tickets from every day
    agents : Sequence[AgentConfig]
        Agents whose shift boundaries are marked
    days : Sequence[CoverageDay]
        Days in the build; the first date anchors shift-boundary conversion
    settings : Optional[Settings]
        Reference zone and HQ time

    Returns
    -------
    List[TimelineItem]
        Tickets ordered by reference-zone time of day with hour markers, one
        start/end marker per agent and one HQ marker
    """
    settings = settings or Settings()
    ref_tz = settings.reference_timezone

    if days:
        ref_date = days[0].date
    elif tickets:
        ref_date = to_zone_date_str(min(t.created_at for t in tickets), ref_tz)
    else:
        return []

    # (agent, start instant, end instant, start time-of-day, end time-of-day)
    thresholds = []
    for agent in agents:
        start_utc = local_time_to_utc(ref_date, agent.shift_start, agent.timezone)
        end_utc = local_time_to_utc(ref_date, agent.shift_end, agent.timezone)
        thresholds.append(
            (
                agent,
                start_utc,
                end_utc,
                to_zone_time_of_day(start_utc, ref_tz),
                to_zone_time_of_day(end_utc, ref_tz),
            )
        )

    hq_hour, hq_minute = parse_time_string(settings.hq_online_time)
    hq_time_of_day = f"{hq_hour:02d}:{hq_minute:02d}:00"
    hq_utc = local_time_to_utc(ref_date, settings.hq_online_time, ref_tz)

    projected = sorted(
        ((to_zone_time_of_day(t.created_at, ref_tz), t) for t in tickets),
        key=lambda pair: (pair[0], pair[1].created_at),
    )

    items: List[TimelineItem] = []
    started = set()
    ended = set()
    hq_inserted = False
    last_hour: Optional[int] = None

    for time_of_day, ticket in projected:
        hour = int(time_of_day[:2])
        if hour != last_hour:
            items.append(Marker(key=f"hour-{hour}", label=hour_label(hour), marker_kind="hour"))
            last_hour = hour

        for agent, _, _, start_tod, _ in thresholds:
            if agent.id not in started and time_of_day >= start_tod:
                items.append(agent_start_marker(agent, f"combined-start-{agent.id}"))
                started.add(agent.id)

        if not hq_inserted and time_of_day >= hq_time_of_day:
            items.append(Marker(key="combined-hq-online", label=settings.hq_label, marker_kind="hq_online"))
            hq_inserted = True

        for agent, _, _, _, end_tod in thresholds:
            if agent.id not in ended and time_of_day >= end_tod:
                items.append(agent_end_marker(agent, f"combined-end-{agent.id}"))
                ended.add(agent.id)

        items.append(TicketItem(ticket=ticket))

    remaining: List[Tuple[datetime, Marker]] = []
    for agent, start_utc, end_utc, _, _ in thresholds:
        if agent.id not in started:
            remaining.append((start_utc, agent_start_marker(agent, f"combined-start-{agent.id}")))
        if agent.id not in ended:
            remaining.append((end_utc, agent_end_marker(agent, f"combined-end-{agent.id}")))
    if not hq_inserted:
        remaining.append(
            (hq_utc, Marker(key="combined-hq-online", label=settings.hq_label, marker_kind="hq_online"))
        )
    remaining.sort(key=lambda pair: pair[0])
    items.extend(marker for _, marker in remaining)

    logger.info(
        f"Combined timeline anchored on {ref_date}: {len(projected)} tickets, "
        f"{len(items) - len(projected)} markers"
    )
    return items
