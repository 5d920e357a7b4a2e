"""k6validator - static safety checks for k6 load-test scripts."""

from .analysis.models import ValidateResponse
from .validator import ScriptValidator, validate_script

__version__ = "1.0.0"

__all__ = ["ScriptValidator", "ValidateResponse", "validate_script", "__version__"]
