"""
Timeline Aggregator for the Coverage Timeline.

Turns raw per-agent coverage data into one render-ready snapshot in a single
pass:
1. Loads agent payloads from the source
2. Merges agents' days (dedup + pick attribution)
3. Flattens and filters tickets
4. Assembles the view (single day, rolling days or combined time of day)
5. Collapses marker runs and computes totals

Every request rebuilds the snapshot from scratch; nothing computed here is
cached.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from src.timeline.errors import InvalidTimeZoneError, MalformedTimeStringError
from src.timeline.filters import FilterState, available_categories, filter_tickets
from src.timeline.holidays import HolidayCalendar
from src.timeline.markers import collapse_markers, insert_markers_for_day
from src.timeline.merger import AgentDataset, flatten_days, merge_agent_days
from src.timeline.projector import build_combined_timeline
from src.timeline.settings import Settings
from src.timeline.source import TimelineSource
from src.timeline.store import (
    AgentConfig,
    AgentTotals,
    CoverageDay,
    DayHeader,
    EmptyGap,
    PeriodDescriptor,
    PeriodType,
    TicketEvent,
    TimelineItem,
    TimelineSnapshot,
    TimelineTotals,
    ViewMode,
    day_from_payload,
)
from src.timeline.timezones import city_from_timezone, get_zone, parse_time_string

logger = logging.getLogger(__name__)

# Assigned to agents in selection order
ACCENT_PALETTE = ("blue", "violet", "amber", "teal", "rose", "indigo", "orange", "cyan")


def resolve_view_mode(requested: ViewMode, day_count: int) -> ViewMode:
    """A period with at most one day is always shown as a single day."""
    if day_count <= 1:
        return "single_day"
    if requested == "single_day":
        return "rolling"
    return requested


def build_timeline(
    days: Sequence[CoverageDay],
    filtered_tickets: Sequence[TicketEvent],
    view_mode: ViewMode,
    agents: Sequence[AgentConfig],
    settings: Optional[Settings] = None,
    holidays: Optional[HolidayCalendar] = None,
) -> List[TimelineItem]:
    """
    Assemble timeline items for a view mode (markers not yet collapsed).

    Parameters
    ----------
    days : Sequence[CoverageDay]
        Merged coverage days, ascending
    filtered_tickets : Sequence[TicketEvent]
        Visible tickets with ``day`` set
    view_mode : ViewMode
        'single_day', 'rolling' or 'combined'
    agents : Sequence[AgentConfig]
        Agents whose shift boundaries are marked
    settings : Optional[Settings]
        Reference zone and HQ defaults
    holidays : Optional[HolidayCalendar]
        Holiday source for date-change labels

    Returns
    -------
    List[TimelineItem]
        Flat ordered items; empty when there are no days
    """
    settings = settings or Settings()
    holidays = holidays or HolidayCalendar()

    if not days:
        return []

    if view_mode == "single_day":
        return insert_markers_for_day(
            filtered_tickets, days[0].date, agents, days, settings, holidays
        )

    if view_mode == "combined":
        return build_combined_timeline(filtered_tickets, agents, days, settings)

    by_day: Dict[str, List[TicketEvent]] = defaultdict(list)
    for ticket in filtered_tickets:
        by_day[ticket.day].append(ticket)

    items: List[TimelineItem] = []
    empty_run: List[str] = []

    def flush_empty() -> None:
        if empty_run:
            items.append(
                EmptyGap(start_date=empty_run[0], end_date=empty_run[-1], count=len(empty_run))
            )
            empty_run.clear()

    for day in sorted(days, key=lambda d: d.date):
        day_tickets = by_day.get(day.date, [])
        if not day_tickets:
            empty_run.append(day.date)
            continue

        flush_empty()
        picked = sum(1 for t in day_tickets if t.picked_by_tech)
        items.append(
            DayHeader(
                date=day.date,
                picked=picked,
                not_picked=len(day_tickets) - picked,
                total=len(day_tickets),
            )
        )
        items.extend(
            insert_markers_for_day(day_tickets, day.date, agents, days, settings, holidays)
        )
    flush_empty()

    return items


class TimelineAggregator:
    """
    Builds timeline snapshots for a selection of agents.

    Wraps the whole pipeline behind ``create_timeline`` so callers (the API,
    tests) never orchestrate the individual steps.
    """

    def __init__(
        self,
        source: Optional[TimelineSource] = None,
        settings: Optional[Settings] = None,
        holidays: Optional[HolidayCalendar] = None,
    ):
        """
        Initialize the aggregator.

        Parameters
        ----------
        source : Optional[TimelineSource]
            Provider of per-agent payloads (required by ``create_timeline``)
        settings : Optional[Settings]
            Build settings (default: built-in defaults)
        holidays : Optional[HolidayCalendar]
            Holiday source for date-change labels
        """
        self.source = source
        self.settings = settings or Settings()
        self.holidays = holidays or HolidayCalendar()

        logger.info(
            f"Initialized TimelineAggregator (reference zone "
            f"{self.settings.reference_timezone})"
        )

    def create_timeline(
        self,
        agent_ids: Sequence[str],
        period: Optional[PeriodDescriptor] = None,
        view_mode: ViewMode = "rolling",
        filters: Optional[FilterState] = None,
    ) -> TimelineSnapshot:
        """
        Fetch data for the agents and period and build the snapshot.

        Parameters
        ----------
        agent_ids : Sequence[str]
            Selected agents, in selection order
        period : Optional[PeriodDescriptor]
            Day, week or month (default: today)
        view_mode : ViewMode
            Requested multi-day view: 'rolling' (default) or 'combined'
        filters : Optional[FilterState]
            Include/exclude rules (default: none)

        Returns
        -------
        TimelineSnapshot
            Items, totals and categories for rendering

        Raises
        ------
        InvalidTimeZoneError
            If a selected agent is configured with an unknown zone
        InvalidPeriodError
            If the period cannot be parsed
        """
        if self.source is None:
            raise RuntimeError("TimelineAggregator has no source configured")

        period = period or PeriodDescriptor()
        unique_ids = list(dict.fromkeys(str(a) for a in agent_ids))
        payloads = self.source.fetch(unique_ids, period, self.settings.reference_timezone)
        logger.info(f"Fetched {len(payloads)}/{len(unique_ids)} agent payloads")

        return self.build_snapshot(payloads, period.period_type, view_mode, filters)

    def build_snapshot(
        self,
        agent_payloads: Sequence[Dict[str, Any]],
        period_type: PeriodType = "daily",
        view_mode: ViewMode = "rolling",
        filters: Optional[FilterState] = None,
    ) -> TimelineSnapshot:
        """
        Run the pipeline on payloads that are already fetched.

        Parameters
        ----------
        agent_payloads : Sequence[Dict[str, Any]]
            One provider dict per agent, in selection order
        period_type : PeriodType
            'daily', 'weekly' or 'monthly' (reported on the snapshot)
        view_mode : ViewMode
            Requested view; resolved against the number of days
        filters : Optional[FilterState]
            Include/exclude rules (default: none)

        Returns
        -------
        TimelineSnapshot
            Complete render-ready snapshot
        """
        build_start = datetime.now(timezone.utc)
        filters = filters or FilterState()

        # Step 1: Agents and their days
        datasets = self._build_datasets(agent_payloads)
        agents = [agent for agent, _ in datasets]

        # Step 2: Merge, flatten, filter
        days = merge_agent_days(datasets)
        all_tickets = flatten_days(days)
        visible = filter_tickets(all_tickets, filters)

        # Step 3: Assemble and collapse
        resolved_mode = resolve_view_mode(view_mode, len(days))
        items = collapse_markers(
            build_timeline(days, visible, resolved_mode, agents, self.settings, self.holidays)
        )

        # Step 4: Totals and categories (categories ignore filters)
        totals = self._calculate_totals(all_tickets, visible, agents)
        categories = available_categories(all_tickets)

        snapshot = TimelineSnapshot(
            snapshot_id=str(uuid.uuid4()),
            timestamp=build_start,
            view_mode=resolved_mode,
            period_type=period_type,
            items=items,
            totals=totals,
            categories=categories,
            agents=agents,
            days=[d.date for d in days],
            reference_timezone=self.settings.reference_timezone,
            overnight_cutoff_utc=self.settings.overnight_cutoff_utc,
            filters_active=filters.is_active,
        )

        elapsed_ms = (datetime.now(timezone.utc) - build_start).total_seconds() * 1000
        logger.info(
            f"Timeline built in {elapsed_ms:.1f}ms: view={resolved_mode}, "
            f"{len(agents)} agents, {len(days)} days, "
            f"{len(visible)}/{len(all_tickets)} tickets visible, {len(items)} items"
        )

        return snapshot

    def _build_datasets(self, agent_payloads: Sequence[Dict[str, Any]]) -> List[AgentDataset]:
        """Parse agent payloads into (AgentConfig, days) pairs, skipping duplicates."""
        datasets: List[AgentDataset] = []
        seen_ids = set()

        for payload in agent_payloads:
            agent_id = str(payload.get("id"))
            if agent_id in seen_ids:
                logger.debug(f"Agent {agent_id} selected twice, ignoring repeat")
                continue
            if payload.get("applicable") is False:
                logger.info(f"Agent {agent_id} not applicable for this view, skipping")
                continue
            seen_ids.add(agent_id)

            accent = ACCENT_PALETTE[len(datasets) % len(ACCENT_PALETTE)]
            agent = self._build_agent(payload, accent=accent)
            days = []
            for raw_day in payload.get("days") or []:
                day_str = raw_day.get("date") if isinstance(raw_day, dict) else None
                try:
                    date.fromisoformat(day_str)
                except (TypeError, ValueError):
                    logger.warning(f"Agent {agent_id}: skipping day with invalid date {day_str!r}")
                    continue
                days.append(day_from_payload(raw_day))
            datasets.append((agent, days))

        return datasets

    def _build_agent(self, payload: Dict[str, Any], accent: Optional[str]) -> AgentConfig:
        """Build one AgentConfig, falling back to default shift hours when malformed."""
        agent_id = str(payload.get("id"))
        name = (payload.get("name") or "").strip()
        first_name = name.split()[0] if name else f"Agent {agent_id}"

        tz_name = payload.get("timezone")
        if not tz_name:
            logger.debug(
                f"Agent {agent_id} has no timezone, using {self.settings.reference_timezone}"
            )
            tz_name = self.settings.reference_timezone
        try:
            get_zone(tz_name)
        except InvalidTimeZoneError:
            raise InvalidTimeZoneError(tz_name, agent_id=agent_id) from None

        shift_start = payload.get("workStartTime") or self.settings.default_shift_start
        shift_end = payload.get("workEndTime") or self.settings.default_shift_end
        try:
            parse_time_string(shift_start)
            parse_time_string(shift_end)
        except MalformedTimeStringError as e:
            logger.warning(
                f"Agent {agent_id}: {e.message}; using default shift "
                f"{self.settings.default_shift_start}-{self.settings.default_shift_end}"
            )
            shift_start = self.settings.default_shift_start
            shift_end = self.settings.default_shift_end

        return AgentConfig(
            id=agent_id,
            first_name=first_name,
            shift_start=shift_start,
            shift_end=shift_end,
            timezone=tz_name,
            city=city_from_timezone(tz_name),
            accent=accent,
        )

    def _calculate_totals(
        self,
        all_tickets: List[TicketEvent],
        visible: List[TicketEvent],
        agents: List[AgentConfig],
    ) -> TimelineTotals:
        """Count visible picked/not-picked tickets, hidden tickets and per-agent picks."""
        picked = [t for t in visible if t.picked_by_tech]

        per_agent = []
        for agent in agents:
            per_agent.append(
                AgentTotals(
                    agent_id=agent.id,
                    first_name=agent.first_name,
                    accent=agent.accent,
                    picked=sum(1 for t in picked if t.assigned_tech_id == agent.id),
                )
            )

        return TimelineTotals(
            picked_count=len(picked),
            not_picked_count=len(visible) - len(picked),
            hidden_by_filter_count=len(all_tickets) - len(visible),
            per_agent=per_agent,
        )
