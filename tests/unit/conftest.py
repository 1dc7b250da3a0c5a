"""Shared test fixtures."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from bike_outliner.core.persistence.recovery import RecoveryStore
from bike_outliner.core.tree.store import NodeStore
from bike_outliner.models.node import Document, Kind
from tests.unit.fakes import FakePrompts

SAMPLE_OUTLINE = """\
<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head>
<meta charset="utf-8"/>
<title>Groceries</title>
</head>
<body>
<ul id="root">
<li id="a1"><p>Fruit</p>
<ul>
<li id="a2" data-type="task" data-done="true"><p>Apples</p></li>
<li id="a3" data-type="task"><p><span class="task-checkbox">x</span> Pears</p></li>
</ul>
</li>
<li id="b1" data-type="hr"></li>
<li id="c1" data-type="heading" data-folded="true"><p>Dairy <strong>fresh</strong></p>
<ul>
<li id="c2"><p>Milk</p></li>
</ul>
</li>
</ul>
</body>
</html>
"""


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_OUTLINE


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    path = tmp_path / "groceries.bike"
    path.write_text(SAMPLE_OUTLINE, encoding="utf-8")
    return path


@pytest.fixture
def store() -> NodeStore:
    """Return a store over an outline built through tree operations.

    Top level: ``alpha`` (with children ``alpha.1``, ``alpha.2``), ``beta``
    (task, done), ``rule`` (hr), ``gamma``.
    """
    tree = NodeStore(Document.empty(title="Sample"))
    alpha = tree.create_child()
    assert alpha is not None
    tree.set_body(alpha, "alpha")
    for body in ("alpha.1", "alpha.2"):
        child = tree.create_child(alpha)
        assert child is not None
        tree.set_body(child, body)

    beta = tree.create_sibling(alpha)
    assert beta is not None
    tree.set_body(beta, "beta <em>bold</em>")
    tree.change_kind(beta, Kind.TASK)
    tree.set_done(beta, True)

    rule = tree.create_sibling(beta)
    assert rule is not None
    tree.change_kind(rule, Kind.HR)

    gamma = tree.create_sibling(rule)
    assert gamma is not None
    tree.set_body(gamma, "gamma")
    return tree


@pytest.fixture
def prompts() -> FakePrompts:
    return FakePrompts()


@pytest.fixture
def recovery() -> Iterator[RecoveryStore]:
    store = RecoveryStore(":memory:")
    yield store
    store.close()
