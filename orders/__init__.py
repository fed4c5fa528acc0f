"""
Order drafts, validation and the signed submission lifecycle.

The lifecycle lives in ``orders.lifecycle``; it depends on the venue client,
which in turn parses responses into the schemas exported here.
"""

from .schemas import OpportunityCandidate, OrderDraft, Provenance, ValidatedOrder  # noqa: F401
from .validation import DraftValidationError, ValidationError, validate_draft  # noqa: F401
