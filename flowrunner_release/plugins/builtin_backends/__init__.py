"""
Implementation details for built-in step plugins.

These are *not* part of the public plugin SDK; external plugins should prefer
`flowrunner_release.plugin_api` and implement their own execution logic.
"""

__all__ = []
