"""Consistency repair: remove elements without leaving dangling references.

Removal works on the arena in two steps. The requested ids (and everything
nested below them) are tombstoned, then one sweep rewrites every surviving
reference into a removed element as a placeholder of the same shape. Forwarding
elements that lost a value in that sweep have nothing left to forward, so they
are removed as well and the sweep repeats until nothing else becomes prunable.
"""

import logging
from typing import Dict, Iterable, List, Set

from ddreduce.core.schema.artifact import Artifact, Element

logger = logging.getLogger(__name__)


def _rewrite(element: Element, doomed: Set[int]) -> Element:
    refs = tuple(
        ref.as_placeholder() if ref.target in doomed else ref
        for ref in element.refs
    )
    return Element(
        id=element.id,
        kind=element.kind,
        name=element.name,
        parent=element.parent,
        refs=refs,
        forwarding=element.forwarding,
        attrs=element.attrs,
    )


def prunable_forwarders(artifact: Artifact, doomed: Set[int]) -> Set[int]:
    """Forwarding elements that would lose a referenced value to ``doomed``."""
    pruned = set()
    for element in artifact.elements:
        if element.id in doomed or not element.forwarding:
            continue
        if any(target in doomed for target in element.targets()):
            pruned.add(element.id)
    return pruned


def remove(artifact: Artifact, element_ids: Iterable[int]) -> Artifact:
    """Remove elements and repair every reference that pointed at them.

    Deterministic, total and side-effect free: the input artifact is never
    touched and the result is always structurally valid for a valid input.

    Args:
        artifact: Current artifact version
        element_ids: Identifiers to remove; unknown or tombstoned ids are ignored

    Returns:
        New artifact version without the removed elements, their descendants,
        and the forwarding elements pruned as a consequence

    Raises:
        RepairAnomaly: If the result fails validation (malformed input artifact)

    Example:
        >>> repaired = remove(artifact, {helper.id})
        >>> call = repaired.get(call_id)      # None if the call only forwarded helper
    """
    doomed = artifact.descendants(element_ids)
    requested = len(doomed)

    while True:
        extra = prunable_forwarders(artifact, doomed)
        if not extra:
            break
        doomed |= artifact.descendants(extra)

    survivors: List[Element] = []
    rewritten: Dict[int, Element] = {}
    for element in artifact.elements:
        if element.id in doomed:
            continue
        if any(target in doomed for target in element.targets()):
            element = _rewrite(element, doomed)
            rewritten[element.id] = element
        survivors.append(element)

    if len(doomed) > requested:
        logger.debug(f"Repair pruned {len(doomed) - requested} forwarding elements")
    if rewritten:
        logger.debug(f"Repair placed placeholders in {len(rewritten)} elements")

    result = artifact.with_elements(survivors, removed=doomed)
    result.validate()
    return result
