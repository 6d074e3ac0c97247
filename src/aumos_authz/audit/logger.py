"""Append-only JSONL decision audit trail.

Every enforcement decision can be written as one newline-delimited JSON
record carrying a UTC ISO-8601 timestamp, a session identifier, the request
values, the boolean decision, and the policy row that decided it (if any).

Thread-safety is achieved with a threading.Lock so concurrent ``enforce``
calls can share one audit log.

Example
-------
>>> from pathlib import Path
>>> audit = DecisionAuditLog(Path("/tmp/authz_audit.jsonl"))
>>> audit.log_decision(["alice", "data1", "read"], True, ["alice", "data1", "read"])
>>> audit.last_n(1)[0]["allowed"]
True
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


class DecisionAuditLog:
    """Append-only JSONL log of enforcement decisions.

    Parameters
    ----------
    log_path:
        Path to the ``.jsonl`` audit file.  Parent directories are created
        automatically on first write.
    session_id:
        Optional session identifier stamped on every record.  A random UUID
        is generated if not supplied.
    """

    def __init__(
        self,
        log_path: Path,
        session_id: str | None = None,
    ) -> None:
        self._log_path = Path(log_path)
        self._session_id: str = session_id or str(uuid.uuid4())
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def log_decision(
        self,
        request: Sequence[object],
        allowed: bool,
        explain: Sequence[str] | None = None,
    ) -> None:
        """Append one decision record.

        Parameters
        ----------
        request:
            The request values, in ``r`` token order.  Non-JSON values are
            written with ``str()``.
        allowed:
            The decision returned to the caller.
        explain:
            The policy row that decided the request, if any.
        """
        record: dict[str, object] = {
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            "session_id": self._session_id,
            "event": "enforce",
            "request": list(request),
            "allowed": allowed,
            "explain": list(explain) if explain else [],
        }
        self._write(record)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def read_all(self) -> list[dict[str, object]]:
        """Return all records in write order (empty if the file is missing)."""
        return list(self._iter_records())

    def query(self, filters: dict[str, object]) -> list[dict[str, object]]:
        """Return records whose top-level fields equal every filter value.

        Example
        -------
        >>> audit.query({"allowed": False})
        [...]
        """
        return [
            record
            for record in self._iter_records()
            if all(record.get(k) == v for k, v in filters.items())
        ]

    def count(self) -> int:
        return sum(1 for _ in self._iter_records())

    def last_n(self, n: int) -> list[dict[str, object]]:
        """Return the ``n`` most recent records."""
        if n <= 0:
            return []
        return list(self._iter_records())[-n:]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write(self, record: dict[str, object]) -> None:
        with self._lock:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(record, default=str) + "\n")

    def _iter_records(self) -> Iterator[dict[str, object]]:
        if not self._log_path.exists():
            return
        with self._lock:
            with self._log_path.open("r", encoding="utf-8") as fh:
                for line in fh:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning("Skipping malformed audit line in %s", self._log_path)

    @property
    def log_path(self) -> Path:
        return self._log_path

    @property
    def session_id(self) -> str:
        return self._session_id
