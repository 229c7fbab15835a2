"""
Core schema definitions for artifacts, oracles, passes and codecs.

These format-agnostic protocols and dataclasses form the foundation
of the reduction engine.
"""

from ddreduce.core.schema.artifact import Artifact, Element, Reference
from ddreduce.core.schema.codec import ArtifactCodec
from ddreduce.core.schema.oracle import Oracle, Verdict
from ddreduce.core.schema.reduction_pass import ReductionPass, Target, target_ids

__all__ = [
    "Artifact",
    "ArtifactCodec",
    "Element",
    "Oracle",
    "ReductionPass",
    "Reference",
    "Target",
    "Verdict",
    "target_ids",
]
