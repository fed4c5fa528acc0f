"""
Extraction of order drafts from instructions and analyst narrative.
"""

from .contracts import ContractDirectory, UnresolvedContractError  # noqa: F401
from .drafts import to_draft  # noqa: F401
from .instruction import from_instruction  # noqa: F401
from .narrative import from_narrative  # noqa: F401
