"""Tests for the end-to-end validation pipeline."""

from unittest.mock import patch

import pytest

from k6validator import ScriptValidator, validate_script
from k6validator.analysis.models import ValidateResponse
from k6validator.config import ValidationConfig
from k6validator.validator import (
    MISSING_EXPORTED_FUNCTION,
    MISSING_K6_IMPORT,
    MISSING_PROTOCOL_IMPORT,
    get_validator,
)


@pytest.fixture
def validator(config):
    return ScriptValidator(config=config)


def _padded(script: str, total: int) -> str:
    """Pad *script* with a trailing comment to exactly *total* characters."""
    return script + "//" + "x" * (total - len(script) - 2)


class TestValidScripts:
    """Scripts that should pass every check."""

    def test_valid_script(self, validator, valid_script):
        result = validator.validate(valid_script)
        assert isinstance(result, ValidateResponse)
        assert result.valid
        assert result.errors == ()
        assert result.message == "Script validation passed"

    def test_options_within_limits(self, validator):
        script = """
import http from 'k6/http';
import { check, sleep } from 'k6';

export const options = { vus: 500, duration: '1m' };

export default function () {
  const res = http.get('https://test.k6.io');
  check(res, { 'status is 200': (r) => r.status === 200 });
  sleep(1);
}
"""
        assert validator.validate(script).valid

    def test_typescript_script(self, validator):
        script = """
import http from 'k6/http';

export default function (): void {
  const url: string = 'https://test.k6.io';
  http.get(url);
}
"""
        assert validator.validate(script, language="typescript").valid

    def test_script_at_size_limit(self, validator, valid_script):
        script = _padded(valid_script, 51200)
        assert len(script) == 51200
        assert validator.validate(script).valid


class TestRejectedScripts:
    """Scripts that should fail, with the exact errors reported."""

    def test_single_eval(self, validator, single_violation_script):
        result = validator.validate(single_violation_script)
        assert not result.valid
        assert result.message == "Script validation failed"
        assert result.errors == (
            "Script contains dangerous functions that could execute arbitrary code "
            "(found: eval()",
        )

    def test_missing_everything(self, validator):
        result = validator.validate("const x = 1;")
        assert result.errors == (
            MISSING_K6_IMPORT,
            MISSING_PROTOCOL_IMPORT,
            MISSING_EXPORTED_FUNCTION,
        )

    def test_missing_protocol_import(self, validator):
        result = validator.validate("import { sleep } from 'k6';\nexport default function () { sleep(1); }\n")
        assert result.errors == (MISSING_PROTOCOL_IMPORT,)

    def test_missing_export(self, validator):
        result = validator.validate("import http from 'k6/http';\nhttp.get('https://test.k6.io');\n")
        assert result.errors == (MISSING_EXPORTED_FUNCTION,)

    def test_structural_errors_short_circuit_pattern_scan(self, validator):
        script = """
import fs from 'fs';
import http from 'k6/http';

export default function () {
  eval('1');
}
"""
        result = validator.validate(script)
        assert result.errors == ("Forbidden Node.js module: fs",)

    def test_syntax_error(self, validator):
        result = validator.validate("import http from 'k6/http';\nexport default function ( {")
        assert result.errors[0].startswith("Script parsing failed")
        assert MISSING_EXPORTED_FUNCTION in result.errors

    def test_vus_over_limit(self, validator):
        script = """
import http from 'k6/http';

export const options = { vus: 501 };

export default function () {
  http.get('https://test.k6.io');
}
"""
        result = validator.validate(script)
        assert result.errors == ("VUs limit exceeded: 501 > 500 (found: vus: 501)",)

    def test_pattern_and_resource_errors_accumulate(self, validator):
        script = """
import http from 'k6/http';

export const options = { vus: 1000 };

export default function () {
  eval('x');
}
"""
        result = validator.validate(script)
        assert result.errors == (
            "Script contains dangerous functions that could execute arbitrary code "
            "(found: eval()",
            "VUs limit exceeded: 1000 > 500 (found: vus: 1000)",
        )

    def test_script_over_size_limit(self, validator, valid_script):
        script = _padded(valid_script, 51201)
        result = validator.validate(script)
        assert result.errors == (
            "Script size (51201 bytes) exceeds maximum allowed size (51200 bytes)",
        )

    def test_size_counts_utf16_code_units(self, validator, valid_script):
        script = valid_script + "//" + chr(0x1F600) * 25600
        assert len(script) < 51200
        result = validator.validate(script)
        assert result.errors == (
            f"Script size ({len(valid_script) + 51202} bytes) exceeds maximum allowed size "
            "(51200 bytes)",
        )

    def test_custom_size_ceiling(self, valid_script):
        validator = ScriptValidator(config=ValidationConfig(max_script_size=10))
        result = validator.validate(valid_script)
        assert result.errors[0] == (
            f"Script size ({len(valid_script)} bytes) exceeds maximum allowed size (10 bytes)"
        )


class TestFailureHandling:
    """Unexpected failures become error responses."""

    def test_exception_becomes_validation_error(self, validator, valid_script):
        with patch.object(
            validator.structural, "analyze_script", side_effect=RuntimeError("kaboom")
        ):
            result = validator.validate(valid_script)
        assert not result.valid
        assert result.errors == ("kaboom",)
        assert result.message == "Validation error"

    def test_exception_without_message(self, validator, valid_script):
        with patch.object(validator.patterns, "analyze_script", side_effect=RuntimeError()):
            result = validator.validate(valid_script)
        assert result.errors == ("An unknown error occurred during validation",)


class TestModuleHelpers:
    """Test the process-wide validator helpers."""

    def test_get_validator_is_cached(self):
        assert get_validator() is get_validator()

    def test_validate_script(self, valid_script, single_violation_script):
        assert validate_script(valid_script).valid
        assert not validate_script(single_violation_script).valid

    def test_to_dict(self, validator, single_violation_script):
        data = validator.validate(single_violation_script).to_dict()
        assert data["valid"] is False
        assert isinstance(data["errors"], list)
        assert data["warnings"] == []
        assert data["message"] == "Script validation failed"
