"""
Text-generation oracle interfaces and adapters.
"""

from .adapters.base import BaseOracleAdapter  # noqa: F401
from .errors import OracleError, OracleResponseError, OracleUnavailableError  # noqa: F401
from .registry import AdapterRegistry  # noqa: F401
