"""Engine report parsing.

The engine prints a summary block with ``Dirs :``, ``Files :`` and ``Bytes :`` lines.
Parsing never raises: a missing or malformed line leaves its counters at zero.
When a log holds several runs (append mode) the last block wins.
"""

import re
from pathlib import Path

from ..constants import BYTES_PLACEHOLDERS
from ..models.run import ReportStatistics

_SIX_COLUMNS = r"\s+".join([r"(\d+)"] * 6)
DIRS_PATTERN = re.compile(rf"^\s*Dirs\s*:\s*{_SIX_COLUMNS}", re.IGNORECASE)
FILES_PATTERN = re.compile(rf"^\s*Files\s*:\s*{_SIX_COLUMNS}", re.IGNORECASE)
BYTES_PATTERN = re.compile(r"^\s*Bytes\s*:\s*(?P<rest>.*)$", re.IGNORECASE)
SIZE_TOKEN = re.compile(r"(\d+(?:\.\d+)?)([kmgt])?", re.IGNORECASE)
UNITS = "kmgt"


def parse_report(content: str | None) -> ReportStatistics:
    """Extract directory, file and byte counters from raw report text.

    Args:
        content: Raw engine report or log content

    Returns:
        Parsed statistics with zero defaults for anything absent
    """
    counters: dict[str, int | str] = {}
    if not content:
        return ReportStatistics()

    for line in content.splitlines():
        if match := DIRS_PATTERN.match(line):
            total, copied = (int(v) for v in match.groups()[:2])
            counters.update(total_dirs=total, copied_dirs=copied)
        elif match := FILES_PATTERN.match(line):
            total, copied, skipped, mismatch, failed, extra = (int(v) for v in match.groups())
            counters.update(
                total_files=total,
                copied_files=copied,
                skipped_files=skipped,
                mismatched_files=mismatch,
                failed_files=failed,
                extra_files=extra,
            )
        elif match := BYTES_PATTERN.match(line):
            total_bytes, copied_bytes = _parse_bytes(match.group("rest"))
            counters.update(total_bytes=total_bytes, copied_bytes=copied_bytes)

    return ReportStatistics(**counters)


def _parse_bytes(rest: str) -> tuple[str, str]:
    """Return (total, copied) size tokens, "0" where absent or a placeholder."""
    sizes: list[str] = []
    for raw in rest.split():
        lowered = raw.lower()
        if lowered in BYTES_PLACEHOLDERS:
            sizes.append("0")
            continue
        if len(lowered) == 1 and lowered in UNITS and sizes:
            # Unit printed as its own column: "5.1 g"
            sizes[-1] += lowered
            continue
        match = SIZE_TOKEN.fullmatch(raw)
        if match is None:
            break
        number, unit = match.groups()
        sizes.append(number + (unit or "").lower())

    total = sizes[0] if sizes else "0"
    copied = sizes[1] if len(sizes) > 1 else "0"
    return total, copied


def parse_report_file(log_path: Path, offset: int = 0) -> ReportStatistics:
    """Parse the report an engine wrote to a log file; a missing log yields zeros.

    ``offset`` skips content written by earlier runs when the log is appended to.
    """
    try:
        with Path(log_path).open("rb") as handle:
            handle.seek(offset)
            content = handle.read().decode("utf-8", errors="replace")
    except OSError:
        return ReportStatistics()
    return parse_report(content)
