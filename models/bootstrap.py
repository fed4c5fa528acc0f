"""
Helper utilities to bootstrap adapter registry with default oracles.
"""

from __future__ import annotations

from config import VenueConfig
from models.adapters.chat import DeepSeekAdapter, OpenAIAdapter
from models.registry import AdapterRegistry


def build_default_registry(config: VenueConfig) -> AdapterRegistry:
    """Return registry pre-populated with OpenAI and DeepSeek adapters."""
    registry = AdapterRegistry()
    registry.register(OpenAIAdapter(api_key=config.openai_api_key or None))
    registry.register(DeepSeekAdapter(api_key=config.deepseek_api_key or None))
    return registry
