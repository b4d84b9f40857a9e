"""
FastAPI backend for the Coverage Timeline.

Serves render-ready timeline snapshots for a selection of helpdesk agents.
Supports CORS for local development of the dashboard frontend.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

# Ensure we import from the local src directory, not elsewhere
timeline_root = Path(__file__).parent.parent
if str(timeline_root) not in sys.path:
    sys.path.insert(0, str(timeline_root))

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from src.timeline.aggregator import TimelineAggregator
from src.timeline.errors import InvalidPeriodError, InvalidTimeZoneError
from src.timeline.filters import FilterState
from src.timeline.settings import load_settings
from src.timeline.source import JsonTimelineSource
from src.timeline.store import PeriodDescriptor

logger = logging.getLogger(__name__)

settings = load_settings()

# Initialize FastAPI app
app = FastAPI(
    title="Coverage Timeline API",
    description="Backend API for the helpdesk coverage timeline",
    version="1.0.0",
)

# Configure CORS - allow all localhost origins in development
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1):\d+",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Raw payloads are cached by the source; snapshots are rebuilt per request
source = JsonTimelineSource(Path(settings.data_dir), cache_ttl_seconds=settings.cache_ttl_seconds)
aggregator = TimelineAggregator(source=source, settings=settings)


def _split_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated query value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@app.get("/")  # type: ignore[misc]
async def root() -> Dict[str, Any]:
    """
    Root endpoint with API information.

    Returns
    -------
    dict
        API information and status
    """
    return {
        "name": "Coverage Timeline API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "/api/timeline": "Get timeline snapshot for selected agents",
            "/api/agents": "Get list of agents with timeline data",
            "/health": "Health check",
        },
    }


@app.get("/health")  # type: ignore[misc]
async def health() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns
    -------
    dict
        Health status
    """
    return {"status": "healthy"}


@app.get("/api/agents")  # type: ignore[misc]
async def get_agents() -> Dict[str, Any]:
    """List agents that have timeline data, sorted by name."""
    try:
        agents = source.list_agents()
        agents.sort(key=lambda a: a.get("name") or "")
        logger.info(f"Listing {len(agents)} agents")
        return {"agents": agents}
    except Exception as e:
        logger.error(f"Error listing agents: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing agents: {str(e)}")


@app.get("/api/timeline")  # type: ignore[misc]
async def get_timeline(
    techIds: Optional[str] = Query(None, description="Comma-separated agent IDs"),
    date: Optional[str] = Query(None, description="Single day, YYYY-MM-DD"),
    weekStart: Optional[str] = Query(None, description="First day of a week, YYYY-MM-DD"),
    month: Optional[str] = Query(None, description="Month, YYYY-MM"),
    view: Literal["rolling", "combined"] = Query(
        "rolling", description="Multi-day view: 'rolling' or 'combined'"
    ),
    excludeCategories: Optional[str] = Query(None, description="Comma-separated categories"),
    excludeText: str = Query("", description="'|'-separated subject terms to hide"),
    includeCategories: Optional[str] = Query(None, description="Comma-separated categories"),
    includeText: str = Query("", description="'|'-separated subject terms to keep"),
) -> Dict[str, Any]:
    """
    Get the timeline snapshot for a set of agents and a period.

    Parameters
    ----------
    techIds : str
        Comma-separated agent IDs, in selection order
    date, weekStart, month : Optional[str]
        At most one; none means today
    view : str
        'rolling' (default) or 'combined'; single-day periods ignore it
    excludeCategories, excludeText, includeCategories, includeText
        Filter state (exclude rules never hide picked tickets)

    Returns
    -------
    dict
        Snapshot with:
        - items: flat ordered timeline items (markers already collapsed)
        - totals: picked / not-picked / hidden counts and per-agent picks
        - categories: categories across all tickets, for filter controls
        - agents, days, view_mode, period_type
    """
    agent_ids = _split_list(techIds)
    if not agent_ids:
        raise HTTPException(status_code=400, detail="techIds is required")

    try:
        period = PeriodDescriptor(date=date, week_start=weekStart, month=month)
        filters = FilterState(
            exclude_categories=_split_list(excludeCategories),
            exclude_text=excludeText,
            include_categories=_split_list(includeCategories),
            include_text=includeText,
        )

        logger.info(
            f"Building timeline: agents={agent_ids}, period={period.period_type}, view={view}"
        )
        snapshot = aggregator.create_timeline(agent_ids, period, view, filters)
        return snapshot.to_dict()

    except InvalidPeriodError as e:
        logger.warning(f"Rejected timeline request: {e.message}")
        raise HTTPException(status_code=400, detail=e.to_dict())
    except InvalidTimeZoneError as e:
        logger.warning(f"Timeline build failed: {e.message}")
        raise HTTPException(status_code=422, detail=e.to_dict())
    except Exception as e:
        logger.error(f"Error building timeline: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error building timeline: {str(e)}")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting Coverage Timeline API on http://0.0.0.0:{settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level="info")  # nosec B104
