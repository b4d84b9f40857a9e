"""
Runtime settings for the coverage timeline.

Settings are read from ``config.json`` at the repository root. Any key that is
missing (or the whole file, if absent or unreadable) falls back to the
defaults below, so the timeline always builds with a usable configuration.
"""

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from src.timeline.errors import InvalidTimeZoneError, MalformedTimeStringError
from src.timeline.timezones import get_zone, parse_time_string

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.json"

# Settings that must be "HH:MM"
TIME_SETTINGS = ("hq_online_time", "default_shift_start", "default_shift_end", "overnight_cutoff_utc")


@dataclass(frozen=True)
class Settings:
    """
    Timeline build settings.

    Parameters
    ----------
    reference_timezone : str
        IANA zone used for date-change lines and the combined time-of-day axis
    hq_online_time : str
        Local "HH:MM" (in the reference zone) when HQ comes online
    hq_label : str
        Label for the HQ online marker
    default_shift_start : str
        Fallback shift start for agents with a missing or malformed start
    default_shift_end : str
        Fallback shift end for agents with a missing or malformed end
    overnight_cutoff_utc : str
        Tickets created before this UTC time on their coverage day are overnight
    data_dir : str
        Directory read by the file-backed timeline source
    cache_ttl_seconds : int
        TTL for raw agent payloads cached by the source
    port : int
        Port used when the API is started directly
    """

    reference_timezone: str = "America/Los_Angeles"
    hq_online_time: str = "09:00"
    hq_label: str = "HQ on · 9am PT"
    default_shift_start: str = "09:00"
    default_shift_end: str = "17:00"
    overnight_cutoff_utc: str = "10:00"
    data_dir: str = str(PROJECT_ROOT / "data" / "timeline")
    cache_ttl_seconds: int = 30
    port: int = 4302


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from a JSON config file.

    Parameters
    ----------
    config_path : Optional[Path]
        Path to the config file (default: ``config.json`` at the project root)

    Returns
    -------
    Settings
        Settings with file values layered over the defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.info(f"No config file at {path}, using defaults")
        return Settings()

    try:
        with open(path, "r") as f:
            data: Dict[str, Any] = json.load(f)
    except Exception as e:
        logger.warning(f"Could not load {path}: {e}, using defaults")
        return Settings()

    known = {f.name for f in fields(Settings)}
    values = {k: v for k, v in data.items() if k in known}

    # Port lives under "backend" in config.json
    backend = data.get("backend") or {}
    if isinstance(backend, dict) and "port" in backend:
        values["port"] = int(backend["port"])

    for key in TIME_SETTINGS:
        if key not in values:
            continue
        try:
            parse_time_string(values[key])
        except MalformedTimeStringError:
            logger.warning(f"Invalid {key} {values[key]!r} in {path}, using default")
            del values[key]

    if "reference_timezone" in values:
        try:
            get_zone(values["reference_timezone"])
        except InvalidTimeZoneError:
            logger.warning(
                f"Invalid reference_timezone {values['reference_timezone']!r} in {path}, "
                f"using default"
            )
            del values["reference_timezone"]

    if "data_dir" in values and not Path(values["data_dir"]).is_absolute():
        values["data_dir"] = str(path.parent / values["data_dir"])

    ignored = set(data) - known - {"backend"}
    if ignored:
        logger.debug(f"Ignoring unknown config keys: {sorted(ignored)}")

    return Settings(**values)
