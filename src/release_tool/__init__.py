"""
release-tool: release notes from git history, with dependency change detection.
"""

__version__ = "1.0.0"
