"""Shared fixtures for k6validator tests."""

import os

import pytest

os.environ.setdefault("K6V_ENV", "test")

from k6validator.analysis.ast_engine import ASTEngine  # noqa: E402
from k6validator.config import ValidationConfig  # noqa: E402

VALID_SCRIPT = """
import http from 'k6/http';

export default function() {
  http.get('https://httpbin.org/get');
}
"""

SINGLE_VIOLATION_SCRIPT = """
import http from 'k6/http';

export default function() {
  eval('console.log("test")');
  http.get('https://httpbin.org/get');
}
"""

MULTIPLE_VIOLATIONS_SCRIPT = """
import http from 'k6/http';

export default function() {
  eval('test');
  Function('return 1')();
  document.write('<script>alert("xss")</script>');
  http.get('https://httpbin.org/get');
}
"""


@pytest.fixture
def engine():
    """Create an ASTEngine instance."""
    return ASTEngine()


@pytest.fixture
def config():
    """Validation limits pinned to the documented defaults."""
    return ValidationConfig(max_script_size=51200, max_vus=500)


@pytest.fixture
def valid_script():
    return VALID_SCRIPT


@pytest.fixture
def single_violation_script():
    return SINGLE_VIOLATION_SCRIPT


@pytest.fixture
def multiple_violations_script():
    return MULTIPLE_VIOLATIONS_SCRIPT
