"""Tabular upload access: turns CSV files into raw row mappings for the normalizer."""

from __future__ import annotations

from pathlib import Path
from typing import IO, Union

import pandas as pd

from allocator.utils.logger import get_logger


logger = get_logger(__name__)

CsvSource = Union[str, Path, IO[str], IO[bytes]]


class RecordLoadError(Exception):
    """Raised when an uploaded table cannot be parsed at all."""


def load_rows_from_csv(source: CsvSource) -> list[dict[str, str]]:
    """Read every cell as text; blank lines are skipped and blanks stay empty strings.

    Header names are trimmed and lower-cased so ``Past_Internship`` and
    ``past_internship`` map to the same column.
    """
    try:
        frame = pd.read_csv(
            source,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise RecordLoadError(f"CSV parsing failed: {exc}") from exc

    frame.columns = [str(column).strip().lower() for column in frame.columns]
    rows = frame.to_dict(orient="records")
    logger.info(
        "CSV rows loaded | source=%s | rows=%s | columns=%s",
        getattr(source, "name", source),
        len(rows),
        list(frame.columns),
    )
    return rows
