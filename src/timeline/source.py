"""
Timeline data sources.

A source answers one question: for these agents and this period, what are
their shift settings and coverage days? Syncing from the upstream helpdesk
happens elsewhere; sources only read what that sync produced.

Payload shape (one dict per agent)::

    {
        "id": "3", "name": "Dana Smith",
        "workStartTime": "08:00", "workEndTime": "16:00",
        "timezone": "America/Toronto",
        "applicable": true,
        "days": [{"date": "2025-06-02", "windowStart": "...", "windowEnd": "...",
                  "tickets": [...], "extendedTickets": [...]}]
    }
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.timeline.store import PeriodDescriptor

logger = logging.getLogger(__name__)


class TimelineSource:
    """Interface for timeline data providers."""

    def fetch(
        self,
        agent_ids: Sequence[str],
        period: PeriodDescriptor,
        timezone_name: str,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError


class StaticTimelineSource(TimelineSource):
    """Serve payloads already held in memory (keyed by agent id)."""

    def __init__(self, payloads: Sequence[Dict[str, Any]]):
        self.payloads = {str(p["id"]): p for p in payloads}

    def fetch(
        self,
        agent_ids: Sequence[str],
        period: PeriodDescriptor,
        timezone_name: str,
    ) -> List[Dict[str, Any]]:
        start, end = period.date_range()
        results = []
        for agent_id in agent_ids:
            payload = self.payloads.get(str(agent_id))
            if payload is None:
                logger.warning(f"Timeline: agent {agent_id} not found")
                continue
            results.append(_restrict_to_period(payload, start.isoformat(), end.isoformat()))
        return results


class JsonTimelineSource(TimelineSource):
    """
    Read per-agent payloads from ``<data_dir>/<agent_id>.json``.

    Each file holds ``{"agent": {...}, "days": [...]}``. Raw file contents are
    cached for ``cache_ttl_seconds``; timelines built from them are not.
    """

    def __init__(self, data_dir: Path, cache_ttl_seconds: int = 30):
        """
        Initialize the source.

        Parameters
        ----------
        data_dir : Path
            Directory holding one JSON file per agent
        cache_ttl_seconds : int
            How long raw file contents are reused (default 30)
        """
        self.data_dir = Path(data_dir)
        self._cache: Dict[str, Tuple[Dict[str, Any], datetime]] = {}
        self._cache_ttl = cache_ttl_seconds

        logger.info(f"Initialized JsonTimelineSource with data dir: {self.data_dir}")

    def fetch(
        self,
        agent_ids: Sequence[str],
        period: PeriodDescriptor,
        timezone_name: str,
    ) -> List[Dict[str, Any]]:
        start, end = period.date_range()
        logger.debug(
            f"Fetching {len(agent_ids)} agents for {period.period_type} period "
            f"{start} to {end} ({timezone_name})"
        )

        results = []
        for agent_id in agent_ids:
            payload = self._load_agent(str(agent_id))
            if payload is None:
                continue
            results.append(_restrict_to_period(payload, start.isoformat(), end.isoformat()))
        return results

    def list_agents(self) -> List[Dict[str, Any]]:
        """Agent summaries (id, name, timezone) for every file in the data dir."""
        if not self.data_dir.exists():
            logger.warning(f"Timeline data dir not found: {self.data_dir}")
            return []

        agents = []
        for path in sorted(self.data_dir.glob("*.json")):
            payload = self._load_agent(path.stem)
            if payload is not None:
                agents.append(
                    {
                        "id": payload["id"],
                        "name": payload.get("name", ""),
                        "timezone": payload.get("timezone"),
                    }
                )
        return agents

    def _load_agent(self, agent_id: str) -> Optional[Dict[str, Any]]:
        """Load one agent file with caching."""
        now = datetime.now(timezone.utc)
        cached = self._cache.get(agent_id)
        if cached is not None and (now - cached[1]).total_seconds() < self._cache_ttl:
            return cached[0]

        agent_file = self.data_dir / f"{agent_id}.json"
        if not agent_file.exists():
            logger.warning(f"Timeline: no data file for agent {agent_id} at {agent_file}")
            return None

        try:
            with open(agent_file, "r") as f:
                data = json.load(f)
        except Exception as e:
            logger.error(f"Error loading {agent_file}: {e}")
            return None

        agent = data.get("agent") or {}
        payload = {
            **agent,
            "id": str(agent.get("id", agent_id)),
            "days": data.get("days") or [],
        }
        self._cache[agent_id] = (payload, now)
        logger.info(f"Loaded {len(payload['days'])} days for agent {agent_id}")
        return payload


def _restrict_to_period(payload: Dict[str, Any], start: str, end: str) -> Dict[str, Any]:
    """Copy of ``payload`` keeping only days with start <= date <= end."""
    days = [d for d in payload.get("days") or [] if start <= (d.get("date") or "") <= end]
    return {**payload, "days": days}
