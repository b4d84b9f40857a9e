"""
Tests for per-day marker insertion and marker-run collapsing.
"""

from datetime import datetime, timezone

import pytest

from src.timeline.holidays import HolidayCalendar
from src.timeline.markers import (
    collapse_markers,
    date_change_label,
    insert_markers_for_day,
)
from src.timeline.settings import Settings
from src.timeline.store import (
    AgentConfig,
    CoverageDay,
    DayHeader,
    EmptyGap,
    Marker,
    MergedMarkerGroup,
    TicketEvent,
    TicketItem,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def ticket(ticket_id, created_at, **kwargs):
    return TicketEvent(id=ticket_id, created_at=created_at, subject=f"Ticket {ticket_id}", **kwargs)


def describe(items):
    """Compact form of a timeline: ticket ids and marker kinds."""
    result = []
    for item in items:
        if isinstance(item, TicketItem):
            result.append(item.ticket.id)
        elif isinstance(item, Marker):
            result.append(item.marker_kind)
        else:
            result.append(item.kind)
    return result


@pytest.fixture
def la_agent():
    return AgentConfig(
        id="1",
        first_name="Alex",
        shift_start="09:00",
        shift_end="17:00",
        timezone="America/Los_Angeles",
        city="Los Angeles",
        accent="blue",
    )


@pytest.fixture
def toronto_agent():
    return AgentConfig(
        id="2",
        first_name="Dana",
        shift_start="06:00",
        shift_end="14:00",
        timezone="America/Toronto",
        city="Toronto",
        accent="violet",
    )


@pytest.fixture
def kolkata_agent():
    return AgentConfig(
        id="3",
        first_name="Priya",
        shift_start="10:00",
        shift_end="18:30",
        timezone="Asia/Kolkata",
        city="Kolkata",
        accent="amber",
    )


@pytest.fixture
def coverage_day():
    return CoverageDay(
        date="2025-06-03",
        window_start=utc(2025, 6, 3, 0, 0),
        window_end=utc(2025, 6, 3, 16, 0),
    )


class TestInsertMarkersForDay:
    """Marker placement relative to ticket instants."""

    def test_los_angeles_scenario_ordering(self, la_agent, coverage_day):
        tickets = [
            ticket("late", utc(2025, 6, 4, 1, 30)),  # 18:30 PT
            ticket("early", utc(2025, 6, 3, 15, 0)),  # 08:00 PT
            ticket("mid", utc(2025, 6, 3, 17, 30)),  # 10:30 PT
        ]

        items = insert_markers_for_day(tickets, "2025-06-03", [la_agent], [coverage_day])

        assert describe(items) == [
            "early",
            "agent_start",
            "hq_online",
            "mid",
            "agent_end",
            "late",
        ]

    def test_marker_keys_and_labels(self, la_agent, coverage_day):
        items = insert_markers_for_day([], "2025-06-03", [la_agent], [coverage_day])

        by_kind = {m.marker_kind: m for m in items}
        assert by_kind["agent_start"].key == "start-2025-06-03-1"
        assert by_kind["agent_start"].label == "Alex on · 9am LA"
        assert by_kind["agent_start"].agent_id == "1"
        assert by_kind["agent_end"].key == "end-2025-06-03-1"
        assert by_kind["agent_end"].label == "Alex off · 5pm LA"
        assert by_kind["hq_online"].key == "hq-2025-06-03"
        assert by_kind["hq_online"].label == Settings().hq_label

    @pytest.mark.parametrize("with_tickets", [False, True])
    def test_each_agent_gets_one_start_one_end_and_day_gets_one_hq(
        self, la_agent, toronto_agent, kolkata_agent, coverage_day, with_tickets
    ):
        agents = [la_agent, toronto_agent, kolkata_agent]
        tickets = []
        if with_tickets:
            tickets = [
                ticket("a", utc(2025, 6, 3, 8, 0)),
                ticket("b", utc(2025, 6, 3, 11, 0)),
                ticket("c", utc(2025, 6, 3, 20, 0)),
            ]

        items = insert_markers_for_day(tickets, "2025-06-03", agents, [coverage_day])
        kinds = describe(items)

        assert kinds.count("agent_start") == 3
        assert kinds.count("agent_end") == 3
        assert kinds.count("hq_online") == 1
        assert len(items) == len(tickets) + 7
        keys = [i.key for i in items if isinstance(i, Marker)]
        assert len(keys) == len(set(keys))

    def test_untriggered_markers_appended_in_utc_order(
        self, la_agent, toronto_agent, coverage_day
    ):
        items = insert_markers_for_day(
            [], "2025-06-03", [la_agent, toronto_agent], [coverage_day]
        )

        # Dana on 10:00Z, Alex on 16:00Z, HQ 16:00Z, Dana off 18:00Z, Alex off 00:00Z
        assert [m.key for m in items] == [
            "start-2025-06-03-2",
            "start-2025-06-03-1",
            "hq-2025-06-03",
            "end-2025-06-03-2",
            "end-2025-06-03-1",
        ]

    def test_tickets_are_sorted_before_insertion(self, la_agent, coverage_day):
        tickets = [ticket("b", utc(2025, 6, 3, 2, 0)), ticket("a", utc(2025, 6, 3, 1, 0))]

        items = insert_markers_for_day(tickets, "2025-06-03", [la_agent], [coverage_day])

        assert describe(items)[:2] == ["a", "b"]

    def test_hq_falls_back_to_configured_time_without_window(self, la_agent):
        tickets = [ticket("x", utc(2025, 6, 3, 16, 30))]

        items = insert_markers_for_day(tickets, "2025-06-03", [], [])

        # 09:00 PT is 16:00Z, so the ticket crosses it
        assert describe(items) == ["hq_online", "x"]

    def test_date_change_between_reference_dates(self, toronto_agent):
        tickets = [
            ticket("before", utc(2025, 6, 3, 6, 0)),  # Jun 2, 23:00 PT
            ticket("after", utc(2025, 6, 3, 8, 0)),  # Jun 3, 01:00 PT
        ]

        items = insert_markers_for_day(tickets, "2025-06-03", [toronto_agent], [])

        assert describe(items) == [
            "before",
            "date_change",
            "after",
            "agent_start",
            "hq_online",
            "agent_end",
        ]
        change = items[1]
        assert change.key == "daychange-2025-06-03"
        assert change.label == "Tuesday, Jun 3"

    def test_date_change_precedes_agent_markers_at_same_point(self, toronto_agent):
        tickets = [
            ticket("before", utc(2025, 6, 3, 6, 0)),  # Jun 2, 23:00 PT
            ticket("after", utc(2025, 6, 3, 10, 30)),  # past Dana's 10:00Z start
        ]

        items = insert_markers_for_day(tickets, "2025-06-03", [toronto_agent], [])

        assert describe(items)[:4] == ["before", "date_change", "agent_start", "after"]

    def test_no_agents_no_tickets_still_has_hq(self, coverage_day):
        items = insert_markers_for_day([], "2025-06-03", [], [coverage_day])
        assert describe(items) == ["hq_online"]

    def test_repeated_calls_do_not_share_state(self, la_agent, coverage_day):
        first = insert_markers_for_day([], "2025-06-03", [la_agent], [coverage_day])
        second = insert_markers_for_day([], "2025-06-03", [la_agent], [coverage_day])
        assert describe(first) == describe(second)


class TestDateChangeLabel:
    """Weekday labels with weekend and holiday annotations."""

    def test_weekday(self):
        assert date_change_label("2025-06-03", HolidayCalendar()) == "Tuesday, Jun 3"

    def test_weekend(self):
        assert date_change_label("2025-06-07", HolidayCalendar()) == "Saturday, Jun 7 (Weekend)"

    def test_canadian_holiday(self):
        assert date_change_label("2025-07-01", HolidayCalendar()) == "Tuesday, Jul 1 · Canada Day"

    def test_canadian_name_wins_on_shared_date(self):
        assert date_change_label("2025-09-01", HolidayCalendar()) == "Monday, Sep 1 · Labour Day"

    def test_us_holiday(self):
        assert (
            date_change_label("2025-07-04", HolidayCalendar()) == "Friday, Jul 4 · Independence Day"
        )

    def test_custom_calendar(self):
        calendar = HolidayCalendar(canadian={}, us={"2025-06-03": "Team Offsite"})
        assert date_change_label("2025-06-03", calendar) == "Tuesday, Jun 3 · Team Offsite"


class TestCollapseMarkers:
    """Runs of consecutive markers merge into one group."""

    def _marker(self, key, kind="agent_start"):
        return Marker(key=key, label=f"label {key}", marker_kind=kind)

    def test_run_of_two_or_more_is_merged(self):
        t = TicketItem(ticket=ticket("t", utc(2025, 6, 3, 12, 0)))
        items = [self._marker("a"), self._marker("b", "hq_online"), self._marker("c"), t]

        result = collapse_markers(items)

        assert len(result) == 2
        group = result[0]
        assert isinstance(group, MergedMarkerGroup)
        assert group.key == "a|b|c"
        assert group.markers == [
            ("label a", "agent_start"),
            ("label b", "hq_online"),
            ("label c", "agent_start"),
        ]
        assert result[1] is t

    def test_single_marker_passes_through(self):
        t1 = TicketItem(ticket=ticket("t1", utc(2025, 6, 3, 12, 0)))
        t2 = TicketItem(ticket=ticket("t2", utc(2025, 6, 3, 13, 0)))
        marker = self._marker("solo")

        assert collapse_markers([t1, marker, t2]) == [t1, marker, t2]

    def test_non_marker_items_break_runs(self):
        header = DayHeader(date="2025-06-03", picked=0, not_picked=1, total=1)
        gap = EmptyGap(start_date="2025-06-04", end_date="2025-06-05", count=2)
        items = [self._marker("a"), header, self._marker("b"), gap, self._marker("c")]

        assert collapse_markers(items) == items

    def test_preserves_counts_and_non_marker_order(self, la_agent, toronto_agent, coverage_day):
        tickets = [
            ticket("a", utc(2025, 6, 3, 4, 0)),
            ticket("b", utc(2025, 6, 3, 17, 0)),
            ticket("c", utc(2025, 6, 3, 19, 0)),
        ]
        items = insert_markers_for_day(
            tickets, "2025-06-03", [la_agent, toronto_agent], [coverage_day]
        )

        result = collapse_markers(items)

        marker_count = sum(1 for i in items if isinstance(i, Marker))
        collapsed_count = sum(
            len(i.markers) if isinstance(i, MergedMarkerGroup) else 1
            for i in result
            if isinstance(i, (Marker, MergedMarkerGroup))
        )
        assert collapsed_count == marker_count
        assert [i.ticket.id for i in result if isinstance(i, TicketItem)] == ["a", "b", "c"]
        for prev, cur in zip(result, result[1:]):
            assert not (
                isinstance(prev, (Marker, MergedMarkerGroup))
                and isinstance(cur, (Marker, MergedMarkerGroup))
            )

    def test_empty_input(self):
        assert collapse_markers([]) == []


class TestHolidayCalendar:
    def test_lookup_flags(self):
        calendar = HolidayCalendar()

        assert calendar.lookup("2025-07-04").is_holiday is True
        assert calendar.lookup("2025-07-04").is_canadian is False
        assert calendar.lookup("2025-06-03").is_holiday is False
        assert calendar.label_suffix("2025-06-03") == ""
