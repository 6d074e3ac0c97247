"""Policy adapter interfaces.

An adapter moves policy rows between a storage backend and a
:class:`~aumos_authz.model.model.Model`.  Adapters that can load a subset of
the policy additionally implement :class:`FilteredAdapter`; the enforcer
checks for that capability before attempting a filtered load.
"""
from __future__ import annotations

import csv
import io
import logging
from abc import ABC, abstractmethod

from aumos_authz.model.assertion import section_of
from aumos_authz.model.model import Model

logger = logging.getLogger(__name__)


class Adapter(ABC):
    """Loads and saves the complete policy of a model."""

    @abstractmethod
    def load_policy(self, model: Model) -> None:
        """Append every stored policy row to ``model``."""

    @abstractmethod
    def save_policy(self, model: Model) -> None:
        """Persist every ``p``/``g`` row of ``model``, replacing stored rows."""


class FilteredAdapter(Adapter):
    """An adapter that can also load a filtered subset of the policy."""

    @abstractmethod
    def load_filtered_policy(self, model: Model, policy_filter: object) -> None:
        """Append only the rows selected by ``policy_filter`` to ``model``."""

    @abstractmethod
    def is_filtered(self) -> bool:
        """Return True when the last load was filtered."""


def parse_policy_line(line: str) -> list[str] | None:
    """Split one CSV-style policy line into ``[ptype, value, ...]``.

    Returns ``None`` for blank lines and ``#`` comments.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    tokens = next(csv.reader([line], skipinitialspace=True))
    return [token.strip() for token in tokens]


def format_policy_line(tokens: list[str]) -> str:
    """Join ``[ptype, value, ...]`` into one line that :func:`parse_policy_line` reads back.

    Fields holding a comma or a double quote are CSV-quoted.
    """
    return ", ".join(_quote_field(token) for token in tokens)


def _quote_field(token: str) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="").writerow([token])
    return buffer.getvalue()


def load_policy_line(line: str, model: Model) -> None:
    """Add the row described by ``line`` to ``model``.

    Lines whose policy type the model does not define are skipped with a
    warning.
    """
    tokens = parse_policy_line(line)
    if tokens is None:
        return
    load_policy_tokens(tokens, model)


def load_policy_tokens(tokens: list[str], model: Model) -> None:
    key = tokens[0]
    if key not in model or section_of(key) not in ("p", "g"):
        logger.warning("Skipping policy line with unknown type %r", key)
        return
    model.add_policy(key, tokens[1:])
