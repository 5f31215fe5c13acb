"""
Plugin registry: the ordered extraction chain.
"""
import logging
from typing import List, Dict, Optional

from core.errors import ExtractionError
from .base import ExtractionPlugin, ExtractionContext, PluginResult

logger = logging.getLogger(__name__)

# Global registry instance
_registry: Optional['PluginRegistry'] = None


class PluginRegistry:
    """Registry for extraction plugins, tried in priority order"""

    def __init__(self):
        self._plugins: List[ExtractionPlugin] = []
        self._plugins_by_name: Dict[str, ExtractionPlugin] = {}

    def register(self, plugin: ExtractionPlugin):
        """Register a plugin"""
        if plugin.name in self._plugins_by_name:
            logger.warning(f"Plugin {plugin.name} already registered, replacing")
            self._plugins = [p for p in self._plugins if p.name != plugin.name]

        self._plugins_by_name[plugin.name] = plugin
        self._plugins.append(plugin)

        # Sort by priority (higher first)
        self._plugins.sort(key=lambda p: p.priority, reverse=True)

        logger.info(f"Registered plugin: {plugin.name} (priority={plugin.priority})")

    def get_plugin(self, name: str) -> Optional[ExtractionPlugin]:
        """Get plugin by name"""
        return self._plugins_by_name.get(name)

    async def extract(
        self,
        html: str,
        context: ExtractionContext,
        allow_fallback: bool = True
    ) -> PluginResult:
        """
        Run plugins in priority order until one returns opportunities.

        A plugin that raises is logged and skipped, so extraction problems
        never reach the caller; the worst case is an empty result.

        Args:
            html: HTML content
            context: Source and page being extracted
            allow_fallback: Whether AI/heuristic plugins may run

        Returns:
            PluginResult from the first successful plugin, else an empty result
        """
        tried = []
        for plugin in self._plugins:
            if plugin.fallback and not allow_fallback:
                continue
            if not plugin.can_handle(context):
                continue

            tried.append(plugin.name)
            try:
                result = await plugin.extract(html, context)
            except ExtractionError as e:
                logger.warning(f"[extract] Plugin {plugin.name} failed for {context.source.name}: {e}")
                continue
            except Exception as e:
                logger.error(f"[extract] Plugin {plugin.name} extraction error: {e}", exc_info=True)
                continue

            if result.is_success():
                logger.info(
                    f"[extract] Plugin {plugin.name} extracted {len(result.opportunities)} "
                    f"opportunities from {context.page_url[:80]}"
                )
                return result

            logger.info(f"[extract] Plugin {plugin.name} found nothing on {context.page_url[:80]}")

        return PluginResult(
            opportunities=[],
            message=f"No opportunities found (tried: {', '.join(tried) or 'none'})",
            metadata={'tried': tried}
        )

    def list_plugins(self) -> List[Dict]:
        """List all registered plugins"""
        return [
            {
                'name': plugin.name,
                'priority': plugin.priority,
                'fallback': plugin.fallback,
                'class': plugin.__class__.__name__
            }
            for plugin in self._plugins
        ]


def build_default_registry(ai_extractor=None) -> PluginRegistry:
    """Registry with the built-in selector, AI and heuristic plugins"""
    from .selector import StructuredSelectorPlugin
    from .ai import AIExtractionPlugin
    from .generic import HeuristicPlugin

    registry = PluginRegistry()
    registry.register(StructuredSelectorPlugin())
    registry.register(AIExtractionPlugin(ai_extractor))
    registry.register(HeuristicPlugin())
    return registry


def get_plugin_registry() -> PluginRegistry:
    """Get or create the global plugin registry"""
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry
