"""Policy file adapter that can load a filtered subset of the rows.

A :class:`Filter` lists expected values per field position for ``p`` and
``g`` rows.  An empty string matches anything.

Example
-------
::

    adapter = FilteredFileAdapter("examples/rbac_with_domains_policy.csv")
    enforcer = CoreEnforcer(model, adapter)
    enforcer.load_filtered_policy(Filter(p=["", "domain1"], g=["", "", "domain1"]))
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from aumos_authz.errors import AdapterCapabilityError
from aumos_authz.model.assertion import section_of
from aumos_authz.model.model import Model
from aumos_authz.persist.adapter import FilteredAdapter, load_policy_tokens, parse_policy_line
from aumos_authz.persist.file_adapter import FileAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Filter:
    """Field-positional row filter.

    Attributes
    ----------
    p:
        Expected values for policy rows (``p``, ``p2``, …).
    g:
        Expected values for grouping rows (``g``, ``g2``, …).
    """

    p: list[str] = field(default_factory=list)
    g: list[str] = field(default_factory=list)

    def values_for(self, key: str) -> list[str]:
        return self.p if section_of(key) == "p" else self.g

    def accepts(self, key: str, rule: list[str]) -> bool:
        """Return True when ``rule`` matches every non-empty filter value."""
        for index, expected in enumerate(self.values_for(key)):
            if not expected:
                continue
            if index >= len(rule) or rule[index] != expected:
                return False
        return True


class FilteredFileAdapter(FileAdapter, FilteredAdapter):
    """File adapter with filtered loading.

    Once a filtered load has happened the adapter refuses to save, since
    writing would drop every row the filter excluded.
    """

    def __init__(self, file_path: str | Path) -> None:
        super().__init__(file_path)
        self._filtered = False

    def load_policy(self, model: Model) -> None:
        self._filtered = False
        super().load_policy(model)

    def load_filtered_policy(self, model: Model, policy_filter: object) -> None:
        """Load only rows accepted by ``policy_filter``.

        ``None`` loads everything.

        Raises
        ------
        TypeError
            If ``policy_filter`` is neither ``None`` nor a :class:`Filter`.
        """
        if policy_filter is None:
            self.load_policy(model)
            return
        if not isinstance(policy_filter, Filter):
            raise TypeError(f"Expected Filter, got {type(policy_filter).__name__}")

        if not self.file_path.exists():
            raise FileNotFoundError(f"Policy file not found: {self.file_path}")

        loaded = 0
        with self.file_path.open("r", encoding="utf-8") as fh:
            for line in fh:
                tokens = parse_policy_line(line)
                if tokens is None or not policy_filter.accepts(tokens[0], tokens[1:]):
                    continue
                load_policy_tokens(tokens, model)
                loaded += 1

        self._filtered = True
        logger.info("Loaded %d filtered policy rows from %s", loaded, self.file_path)

    def is_filtered(self) -> bool:
        return self._filtered

    def save_policy(self, model: Model) -> None:
        if self._filtered:
            raise AdapterCapabilityError("Cannot save a filtered policy")
        super().save_policy(model)
