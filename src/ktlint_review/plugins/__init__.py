"""Plugin system for review steps."""

from .base import Plugin, PluginContext, PluginResult
from .ktlint import KtlintPlugin

__all__ = [
    "Plugin",
    "PluginContext",
    "PluginResult",
    "KtlintPlugin",
]
