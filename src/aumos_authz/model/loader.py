"""Loader for the PERM ``model.conf`` text format.

The expected layout is::

    [request_definition]
    r = sub, obj, act

    [policy_definition]
    p = sub, obj, act

    [role_definition]
    g = _, _

    [policy_effect]
    e = some(where (p.eft == allow))

    [matchers]
    m = g(r.sub, p.sub) && r.obj == p.obj && r.act == p.act

Lines ending in ``\\`` continue on the next line.  ``#`` starts a comment.
Numbered keys (``g2``, ``g3``) are accepted in any section.

Example
-------
>>> model = ModelLoader().load("examples/basic_model.conf")
>>> model.get("m").value
'r_sub == p_sub && r_obj == p_obj && r_act == p_act'
"""
from __future__ import annotations

import configparser
import logging
from pathlib import Path

from aumos_authz.errors import ConfigurationError
from aumos_authz.model.assertion import section_of
from aumos_authz.model.model import SECTION_NAMES, Model

logger = logging.getLogger(__name__)

_SECTION_KEYS: dict[str, str] = {name: sec for sec, name in SECTION_NAMES.items()}


class ModelLoader:
    """Builds :class:`Model` objects from ``.conf`` files or strings."""

    def load(self, model_path: str | Path) -> Model:
        """Load and validate a model file.

        Raises
        ------
        FileNotFoundError
            If ``model_path`` does not exist.
        ConfigurationError
            If the text is malformed or a required section is missing.
        """
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"Model file not found: {model_path}")

        text = model_path.read_text(encoding="utf-8")
        model = self._parse(text, source=str(model_path))
        logger.info("Loaded model from %s", model_path)
        return model

    def load_from_text(self, text: str) -> Model:
        """Load and validate a model from its text."""
        return self._parse(text, source="<text>")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _parse(self, text: str, source: str) -> Model:
        parser = configparser.ConfigParser(
            delimiters=("=",),
            comment_prefixes=("#", ";"),
            interpolation=None,
        )
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        try:
            parser.read_string(_join_continuations(text), source=source)
        except configparser.Error as exc:
            raise ConfigurationError(f"Malformed model text: {exc}", source) from exc

        model = Model()
        for section_name in parser.sections():
            sec = _SECTION_KEYS.get(section_name)
            if sec is None:
                logger.warning("Ignoring unknown model section [%s] in %s", section_name, source)
                continue
            for key, value in parser.items(section_name):
                if section_of(key) != sec:
                    raise ConfigurationError(
                        f"Key {key!r} does not belong in section [{section_name}]", source
                    )
                model.add_def(key, value)

        try:
            model.validate()
        except ConfigurationError as exc:
            raise ConfigurationError(str(exc), source) from exc
        return model


def _join_continuations(text: str) -> str:
    lines: list[str] = []
    pending = ""
    for line in text.splitlines():
        stripped = line.rstrip()
        if stripped.endswith("\\"):
            pending += stripped[:-1].strip() + " "
            continue
        lines.append(pending + stripped.strip() if pending else stripped.strip())
        pending = ""
    if pending:
        lines.append(pending.rstrip())
    return "\n".join(lines)
