"""Reduction pass protocol and target model."""

from dataclasses import dataclass
from typing import Iterable, List, Protocol, Set, Tuple

from ddreduce.core.schema.artifact import Artifact


@dataclass(frozen=True)
class Target:
    """Unit a pass considers for removal in one round.

    Attributes:
        label: Display name (usually the element name)
        element_ids: Identifiers removed together when the target is removed
    """
    label: str
    element_ids: Tuple[int, ...]

    def is_live(self, artifact: Artifact) -> bool:
        return any(artifact.is_live(i) for i in self.element_ids)


def target_ids(targets: Iterable[Target]) -> Set[int]:
    """Union of element ids over a group of targets."""
    ids: Set[int] = set()
    for target in targets:
        ids.update(target.element_ids)
    return ids


class ReductionPass(Protocol):
    """Removal strategy over the current artifact.

    A pass answers two questions: what is removable here (``enumerate``) and
    how to remove a given set of elements (``apply_removal``). Targets are
    enumerated fresh every time the pass runs because earlier removals change
    what exists.
    """

    name: str

    def enumerate(self, artifact: Artifact) -> List[Target]:
        """Return removable targets in a stable order."""
        ...

    def apply_removal(self, artifact: Artifact, element_ids: Set[int]) -> Artifact:
        """Return a new artifact without ``element_ids``, references repaired.

        Raises:
            RepairAnomaly: If the result would not be structurally valid
        """
        ...
