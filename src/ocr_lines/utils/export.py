"""
Result filtering and plain-text output.

Provides:
- Filtering of recognized lines (missing results, single glyph lines)
- Plain text rendering, one recognized line per output line
- The run report printed by the CLI
"""

import logging
from typing import Iterable, List, Optional, TYPE_CHECKING

from .engine import RecognizedLine

if TYPE_CHECKING:
    from ..pipeline import PipelineResult

logger = logging.getLogger(__name__)


def filter_lines(
    recognized: Iterable[Optional[RecognizedLine]],
    min_chars: int = 2
) -> List[str]:
    """
    Drop missing and too-short lines, keeping the original order.

    The length check suppresses spurious single glyph detections. It is an
    accuracy workaround, not a correctness guarantee, hence configurable.

    Args:
        recognized: Recognition output in line order; None for no text
        min_chars: Minimum number of characters a line must have

    Returns:
        Surviving line texts, unchanged and in input order
    """
    lines = []
    dropped = 0
    for item in recognized:
        if item is None:
            continue
        text = item.text if isinstance(item, RecognizedLine) else str(item)
        if len(text) < min_chars:
            dropped += 1
            continue
        lines.append(text)

    if dropped:
        logger.debug(f"Dropped {dropped} line(s) shorter than {min_chars} chars")
    return lines


def format_lines(lines: Iterable[str]) -> str:
    """Render lines as plain text, one per output line."""
    return "\n".join(lines)


def format_report(result: 'PipelineResult') -> str:
    """
    Render a finished run the way the CLI prints it.

    A blank separator, the text lines, another blank separator and the
    elapsed time.
    """
    parts = ["\n"]
    if result.lines:
        parts.append(format_lines(result.lines))
    parts.append("\n")
    seconds = result.elapsed.total_seconds() if result.elapsed is not None else 0.0
    parts.append(f"Took time: {seconds:.2f}s")
    return "\n".join(parts)
