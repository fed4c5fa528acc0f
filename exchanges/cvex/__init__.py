"""
CVEX futures adapters: request signing, REST client and response parsing.
"""

from .client import ApiError, CvexClient, CvexClientError, NetworkError  # noqa: F401
from .signing import (  # noqa: F401
    KeyFormatError,
    KeyUnavailableError,
    RequestSigner,
    SigningError,
    derive_identity,
    sign,
)
