"""
ddreduce: delta-debugging test-case reduction

Shrinks a structured program artifact while an external interestingness test
keeps reporting that the artifact still reproduces the condition of interest.
Elements are removed chunk by chunk (ddmin), dangling references are repaired
with placeholders, and passes are repeated until a fixpoint is reached.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
