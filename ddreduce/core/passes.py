"""Built-in reduction passes.

Each pass is a small class implementing the ReductionPass protocol:
- RemoveDefinitions: whole top-level definitions
- RemoveSubElements: nested sub-elements, deepest first
- RemoveUnusedDefinitions: top-level definitions nothing references

Passes are selected by name from a static, ordered registry.
"""

from typing import Dict, List, Optional, Sequence, Set, Type

from ddreduce.core.config import DEFAULT_PASSES
from ddreduce.core.delta.repair import remove
from ddreduce.core.schema.artifact import Artifact
from ddreduce.core.schema.reduction_pass import ReductionPass, Target


class RemoveDefinitions:
    """Remove whole top-level definitions together with their bodies."""

    name = "definitions"

    def enumerate(self, artifact: Artifact) -> List[Target]:
        return [Target(label=e.name, element_ids=(e.id,)) for e in artifact.roots()]

    def apply_removal(self, artifact: Artifact, element_ids: Set[int]) -> Artifact:
        return remove(artifact, element_ids)


class RemoveSubElements:
    """Remove nested elements one at a time.

    Deeper elements come first so that fine-grained removals inside a body are
    tried before the enclosing block is dropped as a whole.
    """

    name = "sub-elements"

    def enumerate(self, artifact: Artifact) -> List[Target]:
        nested = [e for e in artifact.elements if e.parent is not None]
        order = {e.id: i for i, e in enumerate(nested)}
        nested.sort(key=lambda e: (-artifact.depth(e.id), order[e.id]))
        return [Target(label=e.name, element_ids=(e.id,)) for e in nested]

    def apply_removal(self, artifact: Artifact, element_ids: Set[int]) -> Artifact:
        return remove(artifact, element_ids)


class RemoveUnusedDefinitions:
    """Remove top-level definitions that no other element references.

    Artifacts without any reference yield no targets.

    Before delegating to repair, forwarding elements whose references are all
    placeholders already are swept along with the removal: they forward
    nothing and only keep dead operands alive.
    """

    name = "unused-definitions"

    def enumerate(self, artifact: Artifact) -> List[Target]:
        # Without references every root is unused, which is what the
        # definitions pass already tried.
        if artifact.reference_count() == 0:
            return []
        targets = []
        for root in artifact.roots():
            own = artifact.descendants([root.id])
            users = {
                user.id
                for element_id in own
                for user in artifact.users_of(element_id)
            }
            if users <= own:
                targets.append(Target(label=root.name, element_ids=(root.id,)))
        return targets

    def apply_removal(self, artifact: Artifact, element_ids: Set[int]) -> Artifact:
        stale = {
            e.id
            for e in artifact.elements
            if e.forwarding and e.refs and all(ref.is_placeholder for ref in e.refs)
        }
        return remove(artifact, set(element_ids) | stale)


PASSES: Dict[str, Type[ReductionPass]] = {
    RemoveDefinitions.name: RemoveDefinitions,
    RemoveSubElements.name: RemoveSubElements,
    RemoveUnusedDefinitions.name: RemoveUnusedDefinitions,
}


def get_passes(names: Optional[Sequence[str]] = None) -> List[ReductionPass]:
    """Instantiate passes by name, in the given order.

    Args:
        names: Pass names (default: every built-in pass in declared order)

    Returns:
        List of pass instances

    Raises:
        ValueError: If a name is not recognized
    """
    if names is None:
        names = DEFAULT_PASSES

    passes = []
    for name in names:
        if name not in PASSES:
            raise ValueError(
                f"Unknown reduction pass: {name}. "
                f"Available: {', '.join(PASSES.keys())}"
            )
        passes.append(PASSES[name]())
    return passes
