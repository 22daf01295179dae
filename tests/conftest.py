#!/usr/bin/env python3
"""Shared pytest fixtures for the testwarden test suite.

Project trees are built under ``tmp_path``; every test gets its own
RunContext rooted there so nothing depends on the working directory.
"""

import json
import logging
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from testwarden.utils import RunContext

# Smallest valid PNG (1x1 transparent pixel)
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


def write_file(root: Path, relative: str, content) -> Path:
    """Create ``root/relative`` (parents included) with text or bytes."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


def make_result(status="passed", duration=100, stdout=None, errors=None):
    """One entry of a spec's ``results[]`` list."""
    return {
        "status": status,
        "duration": duration,
        "stdout": [{"text": s} for s in (stdout or [])],
        "errors": errors or [],
    }


def make_spec(title, results=None, project="e2e", line=10, file=None):
    """A spec with a single test entry."""
    spec = {
        "title": title,
        "line": line,
        "tests": [{"projectName": project, "results": results or [make_result()]}],
    }
    if file:
        spec["file"] = file
    return spec


def make_results(*specs, file="e2e/items.spec.ts", suites=None):
    """A minimal Playwright JSON reporter document."""
    return {
        "suites": [{
            "title": file,
            "file": file,
            "specs": list(specs),
            "suites": suites or [],
        }]
    }


@pytest.fixture
def project(tmp_path):
    """Empty project root."""
    return tmp_path.resolve()


@pytest.fixture
def ctx(project):
    return RunContext(project_root=project)


@pytest.fixture
def results_file(project):
    """Write a results document to the first conventional location."""
    def _write(document, relative="tests/report/test-results.json"):
        return write_file(project, relative, json.dumps(document))
    return _write


@pytest.fixture
def package_logger():
    """The ``testwarden`` logger; file handlers added by a test are closed afterwards."""
    logger = logging.getLogger("testwarden")
    yield logger
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
