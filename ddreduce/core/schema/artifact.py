"""Artifact model: an arena of addressable elements with reference edges.

Elements live in a flat, ordered table addressed by stable integer
identifiers. Hierarchy is expressed through ``parent`` links and cross-element
edges through ``Reference`` objects. An artifact is never edited in place:
every removal produces a new version (see ``ddreduce.core.delta.repair``).
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from ddreduce.core.errors import RepairAnomaly


@dataclass(frozen=True)
class Reference:
    """Outgoing edge from an element.

    Attributes:
        slot: Name of the operand slot holding the reference (e.g. "callee")
        target: Identifier of the referenced element, or None for a placeholder
        shape: Kind of value the slot expects; placeholders keep it so they
               stay compatible with the slot
    """
    slot: str
    target: Optional[int]
    shape: str = "value"

    @property
    def is_placeholder(self) -> bool:
        return self.target is None

    def as_placeholder(self) -> "Reference":
        """Return the neutral placeholder standing in for this reference."""
        return Reference(slot=self.slot, target=None, shape=self.shape)


@dataclass(frozen=True)
class Element:
    """Addressable, individually removable unit of an artifact.

    Attributes:
        id: Stable identifier, unique within a session and never reused
        kind: Kind tag (e.g. "function", "call", "line")
        name: Human-readable name, unique within an artifact
        parent: Identifier of the enclosing element, None for top level
        refs: Outgoing references in slot order
        forwarding: True if the element only passes a referenced value along;
                    such elements are pruned once that value is gone
        attrs: Format-specific payload the codec round-trips untouched
    """
    id: int
    kind: str
    name: str
    parent: Optional[int] = None
    refs: Tuple[Reference, ...] = ()
    forwarding: bool = False
    attrs: Dict[str, Any] = field(default_factory=dict, compare=False)

    def targets(self) -> Iterator[int]:
        """Iterate over identifiers this element references (placeholders skipped)."""
        for ref in self.refs:
            if ref.target is not None:
                yield ref.target


@dataclass(frozen=True)
class Artifact:
    """Immutable snapshot of a structured program.

    Attributes:
        elements: Live elements in document order
        tombstones: Identifiers of elements removed in earlier versions
        next_id: First identifier not yet handed out
        version: Monotonic version counter, bumped by every repair
        meta: Codec metadata (module name, trailing newline, ...)

    Example:
        >>> fn = Element(id=0, kind="function", name="main")
        >>> ret = Element(id=1, kind="ret", name="r", parent=0)
        >>> artifact = Artifact(elements=(fn, ret), next_id=2)
        >>> artifact.size
        2
        >>> [e.name for e in artifact.children(0)]
        ['r']
    """
    elements: Tuple[Element, ...]
    next_id: int
    tombstones: FrozenSet[int] = frozenset()
    version: int = 0
    meta: Dict[str, Any] = field(default_factory=dict, compare=False)
    _index: Dict[int, Element] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {e.id: e for e in self.elements})

    @property
    def size(self) -> int:
        """Number of live elements."""
        return len(self.elements)

    def to_serializable(self) -> Dict[str, Any]:
        """Convert artifact to a JSON-serializable dict (for logging and debugging)."""
        return {
            "version": self.version,
            "elements": [
                {
                    "id": e.id,
                    "kind": e.kind,
                    "name": e.name,
                    "parent": e.parent,
                    "refs": [[r.slot, r.target, r.shape] for r in e.refs],
                    "forwarding": e.forwarding,
                }
                for e in self.elements
            ],
            "tombstones": sorted(self.tombstones),
        }

    def get(self, element_id: int) -> Optional[Element]:
        return self._index.get(element_id)

    def is_live(self, element_id: int) -> bool:
        return element_id in self._index

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._index

    def ids(self) -> List[int]:
        return [e.id for e in self.elements]

    def roots(self) -> List[Element]:
        """Top-level elements in document order."""
        return [e for e in self.elements if e.parent is None]

    def children(self, element_id: int) -> List[Element]:
        return [e for e in self.elements if e.parent == element_id]

    def depth(self, element_id: int) -> int:
        depth = 0
        current = self._index[element_id]
        while current.parent is not None:
            depth += 1
            current = self._index[current.parent]
        return depth

    def descendants(self, element_ids: Iterable[int]) -> Set[int]:
        """Return the given live ids plus everything nested below them."""
        closed = {i for i in element_ids if i in self._index}
        # Document order puts children after parents, so one sweep suffices
        # for codec-built artifacts; loop anyway for hand-built ones.
        changed = True
        while changed:
            changed = False
            for e in self.elements:
                if e.parent in closed and e.id not in closed:
                    closed.add(e.id)
                    changed = True
        return closed

    def users_of(self, element_id: int) -> List[Element]:
        """Elements holding a reference to ``element_id``."""
        return [e for e in self.elements if element_id in set(e.targets())]

    def referenced_ids(self) -> Set[int]:
        used: Set[int] = set()
        for e in self.elements:
            used.update(e.targets())
        return used

    def by_name(self, name: str) -> Optional[Element]:
        for e in self.elements:
            if e.name == name:
                return e
        return None

    def reference_count(self) -> int:
        return sum(len(e.refs) for e in self.elements)

    def with_elements(self, elements: Iterable[Element], removed: Iterable[int] = ()) -> "Artifact":
        """Build the next version from a new element table.

        Args:
            elements: Live elements of the new version, in document order
            removed: Identifiers retired by this step (added to the tombstones)

        Returns:
            New Artifact with version bumped; this artifact is unchanged
        """
        return replace(
            self,
            elements=tuple(elements),
            tombstones=self.tombstones | frozenset(removed),
            version=self.version + 1,
        )

    def validate(self) -> None:
        """Check that every parent link and reference resolves.

        Raises:
            RepairAnomaly: If an element points at an identifier that is not live
        """
        for e in self.elements:
            if e.parent is not None and e.parent not in self._index:
                raise RepairAnomaly(
                    f"Element '{e.name}' has dangling parent {e.parent}", element_id=e.id
                )
            for ref in e.refs:
                if ref.target is not None and ref.target not in self._index:
                    state = "tombstoned" if ref.target in self.tombstones else "unknown"
                    raise RepairAnomaly(
                        f"Element '{e.name}' slot '{ref.slot}' points at {state} element {ref.target}",
                        element_id=e.id,
                    )
