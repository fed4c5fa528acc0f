"""
Adapter implementations for individual text-generation providers.
"""

from .chat import ChatCompletionAdapter, DeepSeekAdapter, OpenAIAdapter  # noqa: F401
from .static import StaticOracle  # noqa: F401
