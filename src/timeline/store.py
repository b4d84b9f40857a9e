"""
Data Models for the Coverage Timeline.

This module defines the ticket, coverage-day and agent structures consumed by
the timeline engine, and the closed set of timeline items it produces.

Key principles:
- ALL timestamps must be timezone-aware (UTC)
- Identity attribution is embedded on each ticket (no joins needed)
- Timeline items are a closed union tagged by ``kind``
- Snapshots are recomputed per request and never mutated afterwards
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from src.timeline.errors import InvalidPeriodError
from src.timeline.timezones import parse_time_string, parse_timestamp

logger = logging.getLogger(__name__)

TicketStatus = Literal["Open", "Pending", "Resolved", "Closed"]
TicketSection = Literal["coverage", "extended"]
MarkerKind = Literal["agent_start", "agent_end", "hq_online", "date_change", "hour"]
ViewMode = Literal["single_day", "rolling", "combined"]
PeriodType = Literal["daily", "weekly", "monthly"]

TICKET_STATUSES = ("Open", "Pending", "Resolved", "Closed")
PRIORITY_LABELS = {1: "Low", 2: "Medium", 3: "High", 4: "Urgent"}


@dataclass
class TicketEvent:
    """
    A helpdesk ticket as seen on an agent's coverage timeline.

    Parameters
    ----------
    id : str
        Unique ticket identifier
    created_at : datetime
        When the ticket was created (must be timezone-aware UTC)
    subject : str
        Ticket subject line (keyword filters match against it)
    priority : int
        1 (Low) to 4 (Urgent)
    status : str
        One of: 'Open', 'Pending', 'Resolved', 'Closed'
    category : Optional[str]
        Ticket category
    first_assigned_at : Optional[datetime]
        When the ticket was first assigned (timezone-aware UTC if set)
    closed_at : Optional[datetime]
        When the ticket was closed (timezone-aware UTC if set)
    assigned_tech_id : Optional[str]
        ID of the agent the ticket is assigned to
    picked_by_tech : bool
        True if an agent in the governing selection picked this ticket
    owner_first_name : Optional[str]
        First name of the agent credited with picking it (set by the merger)
    owner_accent : Optional[str]
        Accent of the credited agent (set by the merger)
    requester_name : Optional[str]
        Name of the requester
    external_id : Optional[str]
        Ticket number in the upstream helpdesk
    day : Optional[str]
        Coverage date this ticket belongs to (set when flattening days)
    section : str
        'coverage' (before the cutoff) or 'extended' (after it)
    """

    id: str
    created_at: datetime
    subject: str = ""
    priority: int = 1
    status: TicketStatus = "Open"
    category: Optional[str] = None
    first_assigned_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    assigned_tech_id: Optional[str] = None
    picked_by_tech: bool = False

    # Attribution (embedded by the merger)
    owner_first_name: Optional[str] = None
    owner_accent: Optional[str] = None

    # Display extras
    requester_name: Optional[str] = None
    external_id: Optional[str] = None

    # Flattening metadata
    day: Optional[str] = None
    section: TicketSection = "coverage"

    def __post_init__(self) -> None:
        """Validate timezone-aware timestamps."""
        if self.created_at.tzinfo is None:
            raise ValueError(f"Ticket {self.id}: created_at must be timezone-aware")
        if self.first_assigned_at and self.first_assigned_at.tzinfo is None:
            raise ValueError(f"Ticket {self.id}: first_assigned_at must be timezone-aware")
        if self.closed_at and self.closed_at.tzinfo is None:
            raise ValueError(f"Ticket {self.id}: closed_at must be timezone-aware")

    @property
    def wait_minutes(self) -> Optional[int]:
        """Minutes from creation to first assignment (None if never assigned)."""
        if not self.first_assigned_at:
            return None
        seconds = (self.first_assigned_at - self.created_at).total_seconds()
        if seconds < 0:
            return None
        return int(seconds // 60)

    def is_overnight(self, cutoff_utc: str = "10:00") -> bool:
        """True if created before ``cutoff_utc`` on its coverage day."""
        if not self.day:
            return True
        hour, minute = parse_time_string(cutoff_utc)
        cutoff = datetime.fromisoformat(self.day).replace(
            hour=hour, minute=minute, tzinfo=timezone.utc
        )
        return self.created_at < cutoff


@dataclass
class CoverageDay:
    """
    One calendar date's coverage window and the tickets inside it.

    Parameters
    ----------
    date : str
        Coverage date, YYYY-MM-DD
    window_start : Optional[datetime]
        Start of the coverage window (timezone-aware UTC)
    window_end : Optional[datetime]
        Extended-coverage cutoff; also the HQ online threshold
    tickets : List[TicketEvent]
        Tickets created inside the coverage window
    extended_tickets : List[TicketEvent]
        Tickets created after the cutoff
    window_label : Optional[str]
        Human label for the window, e.g. "Fri 06-13 5pm → Mon 06-16 9am PT"
    """

    date: str
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    tickets: List[TicketEvent] = field(default_factory=list)
    extended_tickets: List[TicketEvent] = field(default_factory=list)
    window_label: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate timezone-aware window boundaries."""
        if self.window_start and self.window_start.tzinfo is None:
            raise ValueError(f"Day {self.date}: window_start must be timezone-aware")
        if self.window_end and self.window_end.tzinfo is None:
            raise ValueError(f"Day {self.date}: window_end must be timezone-aware")


@dataclass(frozen=True)
class AgentConfig:
    """
    Shift configuration for one agent.

    Parameters
    ----------
    id : str
        Agent identifier
    first_name : str
        First name shown on markers and ticket badges
    shift_start : str
        Local shift start, HH:MM
    shift_end : str
        Local shift end, HH:MM
    timezone : str
        IANA zone the shift times are expressed in
    city : str
        Display city derived from the zone
    accent : Optional[str]
        Accent assigned by selection order
    """

    id: str
    first_name: str
    shift_start: str
    shift_end: str
    timezone: str
    city: str
    accent: Optional[str] = None


@dataclass(frozen=True)
class PeriodDescriptor:
    """
    The period a timeline covers: exactly one of a date, week or month.

    A descriptor with nothing set means "today" (daily).
    """

    date: Optional[str] = None
    week_start: Optional[str] = None
    month: Optional[str] = None

    def __post_init__(self) -> None:
        given = [v for v in (self.date, self.week_start, self.month) if v]
        if len(given) > 1:
            raise InvalidPeriodError("Specify only one of date, weekStart or month")

    @property
    def period_type(self) -> PeriodType:
        if self.month:
            return "monthly"
        if self.week_start:
            return "weekly"
        return "daily"

    def date_range(self, today: Optional[date] = None) -> Tuple[date, date]:
        """
        Inclusive (start, end) calendar dates of the period.

        Raises
        ------
        InvalidPeriodError
            If the date, week start or month cannot be parsed
        """
        try:
            if self.month:
                year, month = (int(p) for p in self.month.split("-"))
                start = date(year, month, 1)
                next_month = date(year + month // 12, month % 12 + 1, 1)
                return start, next_month - timedelta(days=1)
            if self.week_start:
                start = date.fromisoformat(self.week_start)
                return start, start + timedelta(days=6)
            if self.date:
                day = date.fromisoformat(self.date)
                return day, day
        except ValueError as e:
            raise InvalidPeriodError(f"Invalid period: {e}") from None

        day = today or datetime.now(timezone.utc).date()
        return day, day


# =============================================================================
# TIMELINE ITEMS (closed union, tagged by ``kind``)
# =============================================================================


@dataclass
class TicketItem:
    """A ticket row on the timeline."""

    ticket: TicketEvent
    kind: Literal["ticket"] = field(default="ticket", init=False)


@dataclass
class Marker:
    """
    A separator line on the timeline.

    Parameters
    ----------
    key : str
        Stable key, unique within one timeline
    label : str
        Display label
    marker_kind : str
        One of: 'agent_start', 'agent_end', 'hq_online', 'date_change', 'hour'
    agent_id : Optional[str]
        Agent the marker belongs to (agent_start/agent_end only)
    """

    key: str
    label: str
    marker_kind: MarkerKind
    agent_id: Optional[str] = None
    kind: Literal["marker"] = field(default="marker", init=False)


@dataclass
class DayHeader:
    """Header opening one day in the rolling view, with per-day counts."""

    date: str
    picked: int
    not_picked: int
    total: int
    kind: Literal["day_header"] = field(default="day_header", init=False)

    @property
    def key(self) -> str:
        return f"dh-{self.date}"


@dataclass
class EmptyGap:
    """A run of consecutive days without any visible ticket."""

    start_date: str
    end_date: str
    count: int
    kind: Literal["empty_gap"] = field(default="empty_gap", init=False)

    @property
    def key(self) -> str:
        return f"gap-{self.start_date}-{self.end_date}"


@dataclass
class MergedMarkerGroup:
    """Two or more consecutive markers shown as one compact line."""

    key: str
    markers: List[Tuple[str, MarkerKind]]
    kind: Literal["merged_markers"] = field(default="merged_markers", init=False)


TimelineItem = Union[TicketItem, Marker, DayHeader, EmptyGap, MergedMarkerGroup]


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def ticket_to_dict(ticket: TicketEvent, overnight_cutoff_utc: str = "10:00") -> Dict[str, Any]:
    """Convert a ticket to a JSON-serializable dictionary."""
    data = {
        k: (_serialize_datetime(v) if isinstance(v, datetime) else v)
        for k, v in vars(ticket).items()
    }
    data["priority_label"] = PRIORITY_LABELS.get(ticket.priority, "")
    data["wait_minutes"] = ticket.wait_minutes
    data["is_overnight"] = ticket.is_overnight(overnight_cutoff_utc)
    return data


def item_to_dict(item: TimelineItem, overnight_cutoff_utc: str = "10:00") -> Dict[str, Any]:
    """Convert a timeline item to a JSON-serializable dictionary."""
    if isinstance(item, TicketItem):
        return {
            "kind": item.kind,
            "key": f"ticket-{item.ticket.id}",
            "ticket": ticket_to_dict(item.ticket, overnight_cutoff_utc),
        }
    if isinstance(item, MergedMarkerGroup):
        return {
            "kind": item.kind,
            "key": item.key,
            "markers": [
                {"label": label, "marker_kind": marker_kind}
                for label, marker_kind in item.markers
            ],
        }
    data = dict(vars(item))
    # kind is a class-level default, not an instance attribute
    data["kind"] = item.kind
    if isinstance(item, (DayHeader, EmptyGap)):
        data["key"] = item.key
    return data


# =============================================================================
# TOTALS AND SNAPSHOT
# =============================================================================


@dataclass
class AgentTotals:
    """Per-agent picked count among visible tickets."""

    agent_id: str
    first_name: str
    accent: Optional[str] = None
    picked: int = 0


@dataclass
class TimelineTotals:
    """
    Aggregate counts for filter controls and headers.

    Parameters
    ----------
    picked_count : int
        Visible picked tickets
    not_picked_count : int
        Visible not-picked tickets
    hidden_by_filter_count : int
        Tickets hidden by the current filter state
    per_agent : List[AgentTotals]
        Picked counts per selected agent
    """

    picked_count: int = 0
    not_picked_count: int = 0
    hidden_by_filter_count: int = 0
    per_agent: List[AgentTotals] = field(default_factory=list)


@dataclass
class TimelineSnapshot:
    """
    Render-ready timeline for one agent selection, period and filter state.

    Parameters
    ----------
    snapshot_id : str
        Unique snapshot identifier
    timestamp : datetime
        When the snapshot was built (must be timezone-aware UTC)
    view_mode : str
        Resolved view mode: 'single_day', 'rolling' or 'combined'
    period_type : str
        'daily', 'weekly' or 'monthly'
    items : List[TimelineItem]
        Flat ordered items, markers already collapsed
    totals : TimelineTotals
        Aggregate counts
    categories : List[str]
        Distinct categories across all tickets (before filtering)
    agents : List[AgentConfig]
        Agents included in the build
    days : List[str]
        Coverage dates included in the build
    reference_timezone : str
        Zone used for date-change lines and the combined axis
    filters_active : bool
        True when any include or exclude rule was applied
    """

    snapshot_id: str
    timestamp: datetime
    view_mode: ViewMode
    period_type: PeriodType = "daily"
    items: List[TimelineItem] = field(default_factory=list)
    totals: TimelineTotals = field(default_factory=TimelineTotals)
    categories: List[str] = field(default_factory=list)
    agents: List[AgentConfig] = field(default_factory=list)
    days: List[str] = field(default_factory=list)
    reference_timezone: str = "America/Los_Angeles"
    overnight_cutoff_utc: str = "10:00"
    filters_active: bool = False

    def __post_init__(self) -> None:
        """Validate timezone-aware timestamp."""
        if self.timestamp.tzinfo is None:
            raise ValueError("Snapshot timestamp must be timezone-aware")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert snapshot to JSON-serializable dictionary.

        Returns
        -------
        dict
            JSON-serializable representation
        """
        return {
            "snapshot_id": self.snapshot_id,
            "timestamp": _serialize_datetime(self.timestamp),
            "view_mode": self.view_mode,
            "period_type": self.period_type,
            "items": [item_to_dict(i, self.overnight_cutoff_utc) for i in self.items],
            "totals": {
                "picked_count": self.totals.picked_count,
                "not_picked_count": self.totals.not_picked_count,
                "hidden_by_filter_count": self.totals.hidden_by_filter_count,
                "per_agent": [vars(a) for a in self.totals.per_agent],
            },
            "categories": self.categories,
            "agents": [vars(a) for a in self.agents],
            "days": self.days,
            "reference_timezone": self.reference_timezone,
            "filters_active": self.filters_active,
        }

    def to_json(self) -> str:
        """Convert snapshot to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


# =============================================================================
# PAYLOAD PARSING (provider dicts -> models)
# =============================================================================


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def ticket_from_payload(data: Dict[str, Any]) -> Optional[TicketEvent]:
    """
    Build a TicketEvent from a provider ticket dict.

    Returns None (and logs) when the ticket has no id or no parseable
    ``createdAt``.
    """
    ticket_id = data.get("id")
    created_at = parse_timestamp(data.get("createdAt"))
    if ticket_id is None or created_at is None:
        logger.warning(
            f"Skipping ticket {ticket_id}: missing id or unparseable createdAt "
            f"{data.get('createdAt')!r}"
        )
        return None

    status = data.get("status") or "Open"
    if status not in TICKET_STATUSES:
        logger.debug(f"Ticket {ticket_id}: unknown status {status!r}, keeping as-is")

    try:
        priority = int(data.get("priority") or 1)
    except (TypeError, ValueError):
        priority = 1

    return TicketEvent(
        id=str(ticket_id),
        created_at=created_at,
        subject=data.get("subject") or "",
        priority=priority,
        status=status,
        category=data.get("ticketCategory") or data.get("category") or None,
        first_assigned_at=parse_timestamp(data.get("firstAssignedAt")),
        closed_at=parse_timestamp(data.get("closedAt")),
        assigned_tech_id=_optional_str(data.get("assignedTechId")),
        picked_by_tech=bool(data.get("pickedByTech", False)),
        requester_name=data.get("requesterName"),
        external_id=_optional_str(data.get("freshserviceTicketId")),
    )


def day_from_payload(data: Dict[str, Any]) -> CoverageDay:
    """Build a CoverageDay from a provider day dict."""
    tickets = [ticket_from_payload(t) for t in data.get("tickets") or []]
    extended = [ticket_from_payload(t) for t in data.get("extendedTickets") or []]
    return CoverageDay(
        date=data["date"],
        window_start=parse_timestamp(data.get("windowStart")),
        window_end=parse_timestamp(data.get("windowEnd")),
        tickets=[t for t in tickets if t is not None],
        extended_tickets=[t for t in extended if t is not None],
        window_label=data.get("windowLabel"),
    )
