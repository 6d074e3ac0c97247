"""Shared fixtures: model texts and paths to the bundled example files."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"

BASIC_MODEL = textwrap.dedent(
    """\
    [request_definition]
    r = sub, obj, act

    [policy_definition]
    p = sub, obj, act

    [policy_effect]
    e = some(where (p.eft == allow))

    [matchers]
    m = r.sub == p.sub && r.obj == p.obj && r.act == p.act
    """
)

RBAC_MODEL = textwrap.dedent(
    """\
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
    """
)

EFT_MODEL_TEMPLATE = textwrap.dedent(
    """\
    [request_definition]
    r = sub, obj, act

    [policy_definition]
    p = sub, obj, act, eft

    [role_definition]
    g = _, _

    [policy_effect]
    e = {effect}

    [matchers]
    m = g(r.sub, p.sub) && r.obj == p.obj && r.act == p.act
    """
)


@pytest.fixture()
def basic_model_text() -> str:
    return BASIC_MODEL


@pytest.fixture()
def rbac_model_text() -> str:
    return RBAC_MODEL


@pytest.fixture()
def eft_model_text() -> Callable[[str], str]:
    """Return a factory for RBAC model texts with an ``eft`` column."""

    def _model(effect: str) -> str:
        return EFT_MODEL_TEMPLATE.format(effect=effect)

    return _model


@pytest.fixture()
def examples_dir() -> Path:
    return EXAMPLES_DIR


@pytest.fixture()
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write ``content`` to ``tmp_path / name`` and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write
