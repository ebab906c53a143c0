import json
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

# One inserted "default" entry pretty-prints to 12 lines with indent=2
LINES_PER_EDIT = 12
MARGIN_LINES = 4


def tail_line_count(edits: int) -> int:
    return edits * LINES_PER_EDIT + MARGIN_LINES


def render_tail(path: Path, edits: int) -> List[str]:
    """
    Pretty-print the database (like `jq .`) and return its last lines.

    The number of lines is sized to the edits made in this run. Raises
    ValueError if the file is not valid JSON any more.
    """
    document = json.loads(path.read_text(encoding="utf-8"))
    lines = json.dumps(document, indent=2, ensure_ascii=False).splitlines()
    return lines[-tail_line_count(edits):]


def show_edits(path: Path, edits: int) -> bool:
    """Log the tail of one changed database. Returns False if it cannot be shown."""
    if edits <= 0:
        return True

    try:
        lines = render_tail(path, edits)
    except (OSError, ValueError) as exc:
        logger.warning("Cannot show changes to %s: %s", path.name, exc)
        return False

    logger.info("Changes to %s\n%s", path.name, "\n".join(lines))
    return True
