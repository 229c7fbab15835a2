"""Unit tests for consistency repair.

Tests cover:
- Placeholder substitution with the reference's shape
- Cascading pruning of forwarding elements
- Removal of nested elements with their parent
- Input artifact left untouched, ids never reused
- Determinism and unknown ids
"""

from ddreduce.core.delta.repair import prunable_forwarders, remove
from ddreduce.core.schema.artifact import Artifact, Element, Reference


def make_module() -> Artifact:
    return Artifact(
        elements=(
            Element(id=0, kind="function", name="helper"),
            Element(id=1, kind="ret", name="helper.ret", parent=0),
            Element(id=2, kind="function", name="main"),
            Element(id=3, kind="call", name="main.call", parent=2, forwarding=True,
                    refs=(Reference("callee", 0, "function"),)),
            Element(id=4, kind="store", name="main.store", parent=2,
                    refs=(Reference("value", 3, "call"),)),
            Element(id=5, kind="global", name="g"),
            Element(id=6, kind="load", name="main.load", parent=2,
                    refs=(Reference("ptr", 5, "global"),)),
        ),
        next_id=7,
    )


def assert_resolved(artifact: Artifact) -> None:
    for element in artifact.elements:
        for ref in element.refs:
            assert ref.target is None or artifact.is_live(ref.target)


def test_remove_leaf_reference_becomes_placeholder():
    """Removing a global leaves a placeholder of the same shape."""
    artifact = make_module()

    repaired = remove(artifact, {5})

    load = repaired.get(6)
    assert load is not None
    assert load.refs == (Reference("ptr", None, "global"),)
    assert_resolved(repaired)


def test_remove_cascades_through_forwarders():
    """The call only forwarded helper, so it goes too; its user gets a placeholder."""
    artifact = make_module()

    repaired = remove(artifact, {0})

    assert not repaired.is_live(0)
    assert not repaired.is_live(1)  # nested under helper
    assert not repaired.is_live(3)  # forwarding call to helper
    store = repaired.get(4)
    assert store.refs == (Reference("value", None, "call"),)
    assert repaired.tombstones == {0, 1, 3}
    assert_resolved(repaired)


def test_remove_parent_removes_body():
    artifact = make_module()

    repaired = remove(artifact, {2})

    assert [e.name for e in repaired.elements] == ["helper", "helper.ret", "g"]
    assert_resolved(repaired)


def test_chain_of_forwarders_pruned_to_fixpoint():
    artifact = Artifact(
        elements=(
            Element(id=0, kind="global", name="g"),
            Element(id=1, kind="alias", name="a1", forwarding=True, refs=(Reference("of", 0, "global"),)),
            Element(id=2, kind="alias", name="a2", forwarding=True, refs=(Reference("of", 1, "alias"),)),
            Element(id=3, kind="use", name="u", refs=(Reference("x", 2, "alias"),)),
        ),
        next_id=4,
    )

    repaired = remove(artifact, {0})

    assert repaired.ids() == [3]
    assert repaired.get(3).refs == (Reference("x", None, "alias"),)


def test_existing_placeholders_do_not_trigger_pruning():
    """Only placeholders introduced by this repair make a forwarder prunable."""
    artifact = Artifact(
        elements=(
            Element(id=0, kind="call", name="c", forwarding=True, refs=(Reference("callee", None, "function"),)),
            Element(id=1, kind="global", name="g"),
        ),
        next_id=2,
    )

    repaired = remove(artifact, {1})

    assert repaired.ids() == [0]


def test_input_untouched_and_new_version():
    artifact = make_module()
    before = artifact.to_serializable()

    repaired = remove(artifact, {0})

    assert artifact.to_serializable() == before
    assert repaired.version == artifact.version + 1
    assert repaired.next_id == artifact.next_id


def test_deterministic():
    artifact = make_module()

    assert remove(artifact, {0, 5}) == remove(artifact, {5, 0})


def test_unknown_and_tombstoned_ids_ignored():
    artifact = make_module()
    once = remove(artifact, {5})

    twice = remove(once, {5, 99})

    assert twice.ids() == once.ids()
    assert twice.tombstones == once.tombstones


def test_remove_everything():
    artifact = make_module()

    repaired = remove(artifact, set(artifact.ids()))

    assert repaired.size == 0
    assert repaired.tombstones == set(artifact.ids())


def test_prunable_forwarders():
    artifact = make_module()

    assert prunable_forwarders(artifact, {0, 1}) == {3}
    assert prunable_forwarders(artifact, {5}) == set()
