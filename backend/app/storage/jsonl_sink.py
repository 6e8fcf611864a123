"""Append-only JSON Lines persistence for analyses and outcomes.

One record per line, serialized with orjson. Writes run in a worker thread
so the event loop never blocks on disk I/O. A failed write is logged and
reported through the return value; it is never raised and never retried.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable

import orjson
from pydantic import BaseModel, ValidationError

from core.models import Analysis, Outcome

logger = logging.getLogger(__name__)

ANALYSES_FILE = "analyses.jsonl"
OUTCOMES_FILE = "outcomes.jsonl"


def _to_dict(record: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json")
    return record


class JsonlSink:
    """Append-only JSONL file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        # Serializes appends so lines from concurrent writers never interleave
        self._lock = asyncio.Lock()

    async def append(self, record: BaseModel | dict[str, Any]) -> bool:
        """Append one record.

        Args:
            record: Pydantic model or plain dict

        Returns:
            True if the line was written
        """
        try:
            line = orjson.dumps(_to_dict(record)) + b"\n"
        except TypeError as e:
            logger.error(f"Failed to serialize record for {self.path}: {e}")
            return False

        async with self._lock:
            try:
                await asyncio.to_thread(self._write_line, line)
            except OSError as e:
                logger.error(f"Failed to append to {self.path}: {e}")
                return False
        return True

    def _write_line(self, line: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "ab") as f:
            f.write(line)

    async def read_all(self) -> list[dict[str, Any]]:
        """Read every well-formed record. Malformed lines are skipped."""
        try:
            return await asyncio.to_thread(self._read_lines)
        except OSError as e:
            logger.error(f"Failed to read {self.path}: {e}")
            return []

    def _read_lines(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []

        records: list[dict[str, Any]] = []
        with open(self.path, "rb") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = orjson.loads(line)
                except orjson.JSONDecodeError as e:
                    logger.warning(f"{self.path}:{lineno}: skipping malformed line: {e}")
                    continue
                if isinstance(obj, dict):
                    records.append(obj)
        return records


def _validate_all(model: type[BaseModel], records: Iterable[dict[str, Any]], source: Path) -> list:
    items = []
    for record in records:
        try:
            items.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning(f"{source}: skipping invalid {model.__name__} record: {e.error_count()} errors")
    return items


class AnalysisLog:
    """The analysis and outcome logs kept under one data directory."""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)
        self.analyses = JsonlSink(self.data_dir / ANALYSES_FILE)
        self.outcomes = JsonlSink(self.data_dir / OUTCOMES_FILE)

    async def record_analysis(self, analysis: Analysis) -> bool:
        return await self.analyses.append(analysis)

    async def record_outcome(self, outcome: Outcome) -> bool:
        return await self.outcomes.append(outcome)

    async def load_analyses(self) -> list[Analysis]:
        return _validate_all(Analysis, await self.analyses.read_all(), self.analyses.path)

    async def load_outcomes(self) -> list[Outcome]:
        return _validate_all(Outcome, await self.outcomes.read_all(), self.outcomes.path)
