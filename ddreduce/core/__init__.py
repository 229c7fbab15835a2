"""
Core format-agnostic components for ddreduce.

This package contains the artifact model, consistency repair, the ddmin
bisector, the oracle invoker, reduction passes and the session driver.
"""

__all__ = []
