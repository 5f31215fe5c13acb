"""
Extraction plugin system.

Plugins are interchangeable extraction strategies, tried in priority order:
- selectors: the source's own CSS selector recipe
- ai: LLM extraction over the page text
- heuristic: common class-name patterns
"""

from .base import ExtractionContext, ExtractionPlugin, PluginResult
from .registry import PluginRegistry, build_default_registry, get_plugin_registry

__all__ = [
    'ExtractionContext',
    'ExtractionPlugin',
    'PluginResult',
    'PluginRegistry',
    'build_default_registry',
    'get_plugin_registry'
]
