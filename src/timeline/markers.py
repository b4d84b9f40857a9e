"""
Timeline markers: insertion for a single coverage day and run collapsing.

Markers are separator lines between ticket rows:
- agent on/off at each agent's local shift boundaries
- HQ online at the day's coverage cutoff
- date change whenever the reference-zone calendar date rolls over
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from src.timeline.holidays import HolidayCalendar, is_weekend
from src.timeline.settings import Settings
from src.timeline.store import (
    AgentConfig,
    CoverageDay,
    Marker,
    MergedMarkerGroup,
    TicketEvent,
    TicketItem,
    TimelineItem,
)
from src.timeline.timezones import (
    local_time_to_utc,
    short_city,
    short_time,
    to_zone_date_str,
)

logger = logging.getLogger(__name__)


def agent_start_marker(agent: AgentConfig, key: str) -> Marker:
    return Marker(
        key=key,
        label=f"{agent.first_name} on · {short_time(agent.shift_start)} {short_city(agent.city)}",
        marker_kind="agent_start",
        agent_id=agent.id,
    )


def agent_end_marker(agent: AgentConfig, key: str) -> Marker:
    return Marker(
        key=key,
        label=f"{agent.first_name} off · {short_time(agent.shift_end)} {short_city(agent.city)}",
        marker_kind="agent_end",
        agent_id=agent.id,
    )


def date_change_label(date_str: str, holidays: HolidayCalendar) -> str:
    """Label such as "Saturday, Jun 7 (Weekend)" or "Tuesday, Jul 1 · Canada Day"."""
    d = date.fromisoformat(date_str)
    label = f"{d:%A}, {d:%b} {d.day}"
    if is_weekend(date_str):
        label += " (Weekend)"
    return label + holidays.label_suffix(date_str)


def hq_online_instant(date_str: str, days: Sequence[CoverageDay], settings: Settings) -> datetime:
    """The day's window end, or the configured HQ time when the day has none."""
    for day in days:
        if day.date == date_str and day.window_end is not None:
            return day.window_end
    return local_time_to_utc(date_str, settings.hq_online_time, settings.reference_timezone)


def insert_markers_for_day(
    tickets: Sequence[TicketEvent],
    date_str: str,
    agents: Sequence[AgentConfig],
    days: Sequence[CoverageDay],
    settings: Optional[Settings] = None,
    holidays: Optional[HolidayCalendar] = None,
) -> List[TimelineItem]:
    """
    Interleave markers into one coverage day's tickets.

    Parameters
    ----------
    tickets : Sequence[TicketEvent]
        The day's visible tickets
    date_str : str
        Coverage date, YYYY-MM-DD
    agents : Sequence[AgentConfig]
        Agents whose shift boundaries are marked
    days : Sequence[CoverageDay]
        All days in the build (the HQ threshold is the matching day's window end)
    settings : Optional[Settings]
        Reference zone and HQ defaults
    holidays : Optional[HolidayCalendar]
        Holiday source for date-change labels

    Returns
    -------
    List[TimelineItem]
        Tickets and markers in display order. Every agent gets exactly one
        start and one end marker and the day gets exactly one HQ marker; any
        not triggered by a ticket are appended in order of their UTC instant.
    """
    settings = settings or Settings()
    holidays = holidays or HolidayCalendar()

    hq_online = hq_online_instant(date_str, days, settings)
    # Emitted-marker tracking is local to this call
    thresholds: List[Tuple[AgentConfig, datetime, datetime]] = [
        (
            agent,
            local_time_to_utc(date_str, agent.shift_start, agent.timezone),
            local_time_to_utc(date_str, agent.shift_end, agent.timezone),
        )
        for agent in agents
    ]
    started = set()
    ended = set()
    hq_inserted = False

    items: List[TimelineItem] = []
    last_ref_date: Optional[str] = None

    for ticket in sorted(tickets, key=lambda t: t.created_at):
        created = ticket.created_at
        ref_date = to_zone_date_str(created, settings.reference_timezone)

        if last_ref_date is not None and ref_date != last_ref_date:
            items.append(
                Marker(
                    key=f"daychange-{ref_date}",
                    label=date_change_label(ref_date, holidays),
                    marker_kind="date_change",
                )
            )
        last_ref_date = ref_date

        for agent, start, _ in thresholds:
            if agent.id not in started and created >= start:
                items.append(agent_start_marker(agent, f"start-{date_str}-{agent.id}"))
                started.add(agent.id)

        if not hq_inserted and created >= hq_online:
            items.append(Marker(key=f"hq-{date_str}", label=settings.hq_label, marker_kind="hq_online"))
            hq_inserted = True

        for agent, _, end in thresholds:
            if agent.id not in ended and created >= end:
                items.append(agent_end_marker(agent, f"end-{date_str}-{agent.id}"))
                ended.add(agent.id)

        items.append(TicketItem(ticket=ticket))

    remaining: List[Tuple[datetime, Marker]] = []
    for agent, start, end in thresholds:
        if agent.id not in started:
            remaining.append((start, agent_start_marker(agent, f"start-{date_str}-{agent.id}")))
        if agent.id not in ended:
            remaining.append((end, agent_end_marker(agent, f"end-{date_str}-{agent.id}")))
    if not hq_inserted:
        remaining.append(
            (hq_online, Marker(key=f"hq-{date_str}", label=settings.hq_label, marker_kind="hq_online"))
        )

    remaining.sort(key=lambda pair: pair[0])
    items.extend(marker for _, marker in remaining)

    logger.debug(
        f"Day {date_str}: {len(tickets)} tickets, {len(items) - len(tickets)} markers "
        f"({len(remaining)} appended)"
    )
    return items


def collapse_markers(items: Sequence[TimelineItem]) -> List[TimelineItem]:
    """
    Replace each run of two or more consecutive markers with one group.

    Single markers and all non-marker items pass through unchanged.
    """
    result: List[TimelineItem] = []
    run: List[Marker] = []

    def flush() -> None:
        if len(run) == 1:
            result.append(run[0])
        elif run:
            result.append(
                MergedMarkerGroup(
                    key="|".join(m.key for m in run),
                    markers=[(m.label, m.marker_kind) for m in run],
                )
            )
        run.clear()

    for item in items:
        if isinstance(item, Marker):
            run.append(item)
            continue
        flush()
        result.append(item)
    flush()

    return result
