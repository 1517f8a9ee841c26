"""Pytest configuration and fixtures."""
import os
from pathlib import Path
from typing import Dict

import pytest

from tmplstack.templates import TemplateManager

EXAMPLE_TEMPLATES = {
    "parent.tmpl": "{% block greeting %}Hello from master.tmpl{% endblock %}\n",
    "partials/question.tmpl": "Hello from partials/question.tmpl\n",
    "child.tmpl": (
        '{{/* extends "parent.tmpl" */}}\n'
        "{% block greeting %}Hello from child.tmpl\n"
        '{% include "partials/question.tmpl" %}{% endblock %}\n'
    ),
    "grand-child.tmpl": (
        '{{ extends "child.tmpl" }}\n'
        "{% block greeting %}Hello from grand-child.tmpl{% endblock %}\n"
    ),
    "notes.txt": "not a template\n",
}


def _write(root: Path, files: Dict[str, str]) -> Path:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_templates(tmp_path):
    """Return a function writing ``name -> content`` under a fresh template root."""
    root = tmp_path / "templates"
    root.mkdir()

    def make(files: Dict[str, str]) -> Path:
        return _write(root, files)

    return make


@pytest.fixture
def template_dir(make_templates):
    """Template root populated with the example templates."""
    return make_templates(EXAMPLE_TEMPLATES)


@pytest.fixture
def manager(template_dir):
    """Manager with the example templates parsed."""
    return TemplateManager().parse_dir(template_dir, [".tmpl"])


@pytest.fixture
def touch():
    """Return a function that moves a file's mtime forward by ``seconds``."""
    def bump(path: Path, seconds: int = 10) -> None:
        stat = path.stat()
        mtime = stat.st_mtime_ns + seconds * 1_000_000_000
        os.utime(path, ns=(mtime, mtime))

    return bump


@pytest.fixture
def sample_package(monkeypatch):
    """Name of an importable package whose ``views`` directory holds templates."""
    monkeypatch.syspath_prepend(str(Path(__file__).parent / "unit"))
    return "sample_templates"
