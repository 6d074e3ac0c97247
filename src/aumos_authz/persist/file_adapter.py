"""CSV-style policy file adapter.

Policy files hold one row per line, type first::

    p, alice, data1, read
    p, bob, data2, write
    g, alice, data2_admin

Example
-------
>>> adapter = FileAdapter("examples/rbac_policy.csv")
>>> adapter.load_policy(model)
"""
from __future__ import annotations

import logging
from pathlib import Path

from aumos_authz.model.model import Model
from aumos_authz.persist.adapter import Adapter, format_policy_line, load_policy_line

logger = logging.getLogger(__name__)


class FileAdapter(Adapter):
    """Reads and writes policy rows from a local text file.

    Parameters
    ----------
    file_path:
        Path to the policy file.  It does not need to exist until
        :meth:`load_policy` is called.
    """

    def __init__(self, file_path: str | Path) -> None:
        self._file_path = Path(file_path)

    def load_policy(self, model: Model) -> None:
        """Append every row in the file to ``model``.

        Raises
        ------
        FileNotFoundError
            If the policy file does not exist.
        """
        if not self._file_path.exists():
            raise FileNotFoundError(f"Policy file not found: {self._file_path}")

        with self._file_path.open("r", encoding="utf-8") as fh:
            for line in fh:
                load_policy_line(line, model)
        logger.debug("Loaded policy from %s", self._file_path)

    def save_policy(self, model: Model) -> None:
        """Rewrite the file with every ``p`` row followed by every ``g`` row."""
        lines: list[str] = []
        for section in ("p", "g"):
            for key in model.keys(section):
                for rule in model.get_policy(key):
                    lines.append(format_policy_line([key, *rule]))

        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        with self._file_path.open("w", encoding="utf-8") as fh:
            fh.write("\n".join(lines))
            if lines:
                fh.write("\n")
        logger.info("Saved %d policy rows to %s", len(lines), self._file_path)

    @property
    def file_path(self) -> Path:
        return self._file_path

    def __repr__(self) -> str:
        return f"FileAdapter({str(self._file_path)!r})"
