from datetime import datetime
from typing import Any, Dict, List, Optional


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def timestamp_sort_key(value: Any) -> float:
    """Milliseconds since the epoch; 0 for anything missing or unparseable."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    parsed = parse_timestamp(value)
    if parsed is None:
        return 0
    try:
        return parsed.timestamp() * 1000
    except (OverflowError, OSError, ValueError):
        return 0


def sort_newest_first(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(records, key=lambda r: timestamp_sort_key(r.get("timestamp")), reverse=True)
