"""Outline editor core: tree model, file format and persistence."""

from bike_outliner.core.format.parser import parse
from bike_outliner.core.format.serializer import serialize
from bike_outliner.core.persistence.coordinator import PersistenceCoordinator
from bike_outliner.core.tree.store import NodeStore
from bike_outliner.models.node import Document, Kind, Node, Origin, Position

__all__ = [
    "Document",
    "Kind",
    "Node",
    "NodeStore",
    "Origin",
    "PersistenceCoordinator",
    "Position",
    "parse",
    "serialize",
]
