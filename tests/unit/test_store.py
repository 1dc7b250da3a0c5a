"""Tests for NodeStore structural edits."""

import pytest

from bike_outliner.core.tree import ids
from bike_outliner.core.tree.store import NodeStore
from bike_outliner.errors import TreeStructureError
from bike_outliner.models.node import DEFAULT_LATEX, Document, Kind, Node, Position


def _node(tree: NodeStore, body: str) -> Node:
    matches = [n for n in tree.document.nodes.values() if n.body == body]
    assert len(matches) == 1
    return matches[0]


def _bodies(tree: NodeStore, node: Node | None = None) -> list[str | None]:
    parent = node or tree.document.root
    return [child.body for child in tree.document.children_of(parent)]


def _snapshot(tree: NodeStore) -> dict[str, tuple[str | None, tuple[str, ...] | None]]:
    return {
        node.id: (node.parent_id, tuple(node.children) if node.children is not None else None)
        for node in tree.document.nodes.values()
    }


def test_create_child_on_empty_document() -> None:
    """Pressing create on an empty outline adds one plain item."""
    tree = NodeStore(Document.empty())
    node = tree.create_child()
    assert node is not None
    assert tree.document.item_count == 1
    assert node.kind is Kind.PLAIN
    assert node.parent_id == tree.document.root_id


def test_create_sibling_inherits_task_but_not_done(store: NodeStore) -> None:
    beta = _node(store, "beta <em>bold</em>")
    assert beta.kind is Kind.TASK and beta.done

    new = store.create_sibling(beta)

    assert new is not None
    assert new.kind is Kind.TASK
    assert new.done is False
    siblings = store.document.root.children
    assert siblings is not None
    assert siblings.index(new.id) == siblings.index(beta.id) + 1


def test_create_sibling_after_rule_is_plain(store: NodeStore) -> None:
    rule = next(n for n in store.document.iter_items() if n.kind is Kind.HR)
    new = store.create_sibling(rule)
    assert new is not None
    assert new.kind is Kind.PLAIN
    assert new.body == ""


def test_create_sibling_of_detached_node_is_rejected(store: NodeStore) -> None:
    before = _snapshot(store)
    assert store.create_sibling(Node(id="zzzz")) is None
    assert _snapshot(store) == before


def test_create_child_under_rule_is_rejected(store: NodeStore) -> None:
    rule = next(n for n in store.document.iter_items() if n.kind is Kind.HR)
    assert store.create_child(rule) is None
    assert rule.children is None


def test_delete_only_child_detaches_container() -> None:
    tree = NodeStore(Document.empty())
    parent = tree.create_child()
    assert parent is not None
    child = tree.create_child(parent)
    assert child is not None
    tree.set_folded(parent, True)

    assert tree.delete_node(child)

    assert parent.children is None
    assert parent.has_children is False
    assert parent.folded is False
    assert child.id not in tree.document.nodes


def test_delete_removes_whole_subtree(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    child_ids = list(alpha.children or ())
    assert store.delete_node(alpha)
    assert alpha.id not in store.document.nodes
    for child_id in child_ids:
        assert child_id not in store.document.nodes


def test_deleting_everything_leaves_empty_document(store: NodeStore) -> None:
    for node in list(store.document.children_of(store.document.root)):
        store.delete_node(node)
    assert store.document.is_empty
    assert store.document.root.children is None
    assert list(store.document.nodes) == [store.document.root_id]


class _ScriptedRandom:
    """Makes the id generator propose the given ids in order."""

    def __init__(self, *ids: str) -> None:
        self._ids = iter(ids)
        self._current = ""

    def choice(self, seq: str) -> str:
        self._current = next(self._ids)
        return self._current[0]

    def choices(self, seq: str, k: int) -> list[str]:
        return list(self._current[1 : 1 + k])


def test_deleted_ids_are_not_reused(monkeypatch: pytest.MonkeyPatch) -> None:
    """A node created after a delete never gets the deleted node's id."""
    tree = NodeStore(Document.empty())
    doomed = tree.create_child()
    assert doomed is not None
    assert tree.delete_node(doomed)
    assert doomed.id in tree.document.retired

    monkeypatch.setattr(ids, "random", _ScriptedRandom(doomed.id, "Bxyz"))
    fresh = tree.create_child()

    assert fresh is not None
    assert fresh.id == "Bxyz"


def test_structural_edits_on_sample_outline(store: NodeStore) -> None:
    """Create, move, outdent and indent chain correctly through sibling lists."""
    alpha = _node(store, "alpha")
    beta = _node(store, "beta <em>bold</em>")
    first_child = store.document.children_of(alpha)[0]

    assert store.create_sibling(first_child) is not None
    assert store.move_down(first_child)
    assert store.outdent(first_child)
    assert store.indent(beta)
    assert store.move_to(beta, alpha, Position.BEFORE)
    assert _bodies(store)[:2] == ["beta <em>bold</em>", "alpha"]


def test_broken_parent_link_raises_structure_error() -> None:
    """A node missing from its parent's child list is reported, not silently edited."""
    tree = NodeStore(Document.empty())
    node = tree.create_child()
    assert node is not None
    tree.document.root.children = []

    with pytest.raises(TreeStructureError, match="not in its parent's child list"):
        tree._detach(node)
    assert tree.delete_node(node) is False


def test_delete_root_is_rejected(store: NodeStore) -> None:
    assert store.delete_node(store.document.root) is False


def test_indent_makes_node_last_child_of_previous(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    beta = _node(store, "beta <em>bold</em>")

    assert store.indent(beta)

    assert _bodies(store, alpha) == ["alpha.1", "alpha.2", "beta <em>bold</em>"]
    assert beta.parent_id == alpha.id


def test_indent_first_child_is_noop(store: NodeStore) -> None:
    first = _node(store, "alpha.1")
    before = _snapshot(store)
    assert store.indent(first) is False
    assert _snapshot(store) == before


def test_indent_after_rule_is_noop(store: NodeStore) -> None:
    gamma = _node(store, "gamma")
    before = _snapshot(store)
    assert store.indent(gamma) is False
    assert _snapshot(store) == before


def test_indent_then_outdent_restores_position(store: NodeStore) -> None:
    beta = _node(store, "beta <em>bold</em>")
    before = _snapshot(store)

    assert store.indent(beta)
    assert store.outdent(beta)

    assert _snapshot(store) == before


def test_outdent_last_child_detaches_parent_container() -> None:
    """[X, P, Z] with Y under P: outdenting Y puts it right after P."""
    tree = NodeStore(Document.empty())
    x = tree.create_child()
    assert x is not None
    p = tree.create_sibling(x)
    assert p is not None
    z = tree.create_sibling(p)
    assert z is not None
    y = tree.create_child(p)
    assert y is not None

    assert tree.outdent(y)

    assert tree.document.root.children == [x.id, p.id, y.id, z.id]
    assert p.children is None
    assert p.has_children is False


def test_outdent_carries_following_siblings(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    third = store.create_child(alpha)
    assert third is not None
    store.set_body(third, "alpha.3")
    second = _node(store, "alpha.2")

    assert store.outdent(second)

    assert _bodies(store, alpha) == ["alpha.1"]
    assert _bodies(store)[:3] == ["alpha", "alpha.2", "alpha.3"]


def test_outdent_top_level_is_noop(store: NodeStore) -> None:
    before = _snapshot(store)
    assert store.outdent(_node(store, "alpha")) is False
    assert _snapshot(store) == before


def test_move_up_and_down_swap_siblings(store: NodeStore) -> None:
    first = _node(store, "alpha.1")
    second = _node(store, "alpha.2")
    alpha = _node(store, "alpha")

    assert store.move_down(first)
    assert alpha.children == [second.id, first.id]
    assert store.move_up(first)
    assert alpha.children == [first.id, second.id]


def test_move_at_boundary_is_noop(store: NodeStore) -> None:
    assert store.move_up(_node(store, "alpha")) is False
    assert store.move_down(_node(store, "gamma")) is False


def test_move_to_self_or_descendant_is_rejected(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    child = _node(store, "alpha.1")
    before = _snapshot(store)

    for position in Position:
        assert store.move_to(alpha, alpha, position) is False
        assert store.move_to(alpha, child, position) is False

    assert _snapshot(store) == before


def test_move_to_before_and_after(store: NodeStore) -> None:
    gamma = _node(store, "gamma")
    alpha = _node(store, "alpha")

    assert store.move_to(gamma, alpha, "before")
    assert _bodies(store)[0] == "gamma"

    assert store.move_to(gamma, alpha, Position.AFTER)
    assert _bodies(store)[:2] == ["alpha", "gamma"]


def test_move_to_inside_appends_and_unfolds(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    gamma = _node(store, "gamma")
    store.set_folded(alpha, True)

    assert store.move_to(gamma, alpha, Position.INSIDE)

    assert _bodies(store, alpha) == ["alpha.1", "alpha.2", "gamma"]
    assert alpha.folded is False


def test_move_to_inside_rule_falls_back_to_after(store: NodeStore) -> None:
    rule = next(n for n in store.document.iter_items() if n.kind is Kind.HR)
    alpha = _node(store, "alpha")

    assert store.move_to(alpha, rule, Position.INSIDE)

    assert rule.children is None
    root_children = store.document.root.children
    assert root_children is not None
    assert root_children.index(alpha.id) == root_children.index(rule.id) + 1


def test_move_last_child_out_detaches_container(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    for body in ("alpha.1", "alpha.2"):
        assert store.move_to(_node(store, body), _node(store, "gamma"), Position.AFTER)
    assert alpha.children is None


def test_move_relative_to_root_is_rejected(store: NodeStore) -> None:
    gamma = _node(store, "gamma")
    assert store.move_to(gamma, store.document.root, Position.BEFORE) is False


def test_change_kind_same_kind_is_noop(store: NodeStore) -> None:
    calls: list[str] = []
    store.on_change = calls.append
    assert store.change_kind(_node(store, "gamma"), Kind.PLAIN) is False
    assert calls == []


def test_leaving_task_clears_done(store: NodeStore) -> None:
    beta = _node(store, "beta <em>bold</em>")
    assert store.change_kind(beta, Kind.NOTE)
    assert beta.done is False
    assert beta.body == "beta <em>bold</em>"


def test_entering_and_leaving_rule(store: NodeStore) -> None:
    gamma = _node(store, "gamma")
    node_id = gamma.id

    assert store.change_kind(gamma, Kind.HR)
    assert gamma.body is None
    assert store.set_body(gamma, "text") is False

    assert store.change_kind(gamma, "plain")
    assert gamma.body == ""
    assert gamma.id == node_id


def test_rule_with_children_is_rejected(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    assert store.change_kind(alpha, Kind.HR) is False
    assert alpha.kind is Kind.PLAIN


def test_entering_latex_fills_empty_body() -> None:
    tree = NodeStore(Document.empty())
    node = tree.create_child()
    assert node is not None
    assert tree.change_kind(node, Kind.LATEX)
    assert node.body == DEFAULT_LATEX


def test_fold_requires_children(store: NodeStore) -> None:
    assert store.set_folded(_node(store, "gamma"), True) is False
    alpha = _node(store, "alpha")
    assert store.toggle_fold(alpha)
    assert alpha.folded is True
    assert store.toggle_fold(alpha)
    assert alpha.folded is False


def test_done_only_for_tasks(store: NodeStore) -> None:
    assert store.set_done(_node(store, "gamma"), True) is False
    beta = _node(store, "beta <em>bold</em>")
    assert store.toggle_done(beta)
    assert beta.done is False


def test_on_change_reports_accepted_edits_only(store: NodeStore) -> None:
    calls: list[str] = []
    store.on_change = calls.append

    store.indent(_node(store, "alpha"))  # rejected: no previous sibling
    store.indent(_node(store, "beta <em>bold</em>"))

    assert calls == ["indent"]


def test_ids_are_stable_across_moves(store: NodeStore) -> None:
    beta = _node(store, "beta <em>bold</em>")
    node_id = beta.id
    store.indent(beta)
    store.outdent(beta)
    store.move_to(beta, _node(store, "gamma"), Position.AFTER)
    assert beta.id == node_id
    assert store.document.nodes[node_id] is beta


def test_visible_traversal_skips_folded_children(store: NodeStore) -> None:
    alpha = _node(store, "alpha")
    beta = _node(store, "beta <em>bold</em>")

    assert store.next_visible(alpha) is _node(store, "alpha.1")
    assert store.previous_visible(beta) is _node(store, "alpha.2")

    store.set_folded(alpha, True)
    assert store.next_visible(alpha) is beta
    assert store.previous_visible(beta) is alpha
    assert store.previous_visible(alpha) is None
    assert store.next_visible(_node(store, "gamma")) is None
