"""Tests for core types."""

import pytest

from lowpoly.types import (
    EDGE_INWARD_NORMALS,
    PlacedInstance,
    RectEdge,
    Transform,
    rect_edges,
)


class TestRectEdges:
    """Tests for edge classification."""

    def test_interior_point(self):
        """Interior points lie on no edge."""
        assert rect_edges(50.0, 50.0, 100.0, 100.0) == frozenset()

    def test_single_edges(self):
        """Points on one side report that side."""
        assert rect_edges(0.0, 40.0, 100.0, 100.0) == {RectEdge.LEFT}
        assert rect_edges(100.0, 40.0, 100.0, 100.0) == {RectEdge.RIGHT}
        assert rect_edges(40.0, 0.0, 100.0, 100.0) == {RectEdge.BOTTOM}
        assert rect_edges(40.0, 100.0, 100.0, 100.0) == {RectEdge.TOP}

    def test_corner_is_two_edges(self):
        """A corner lies on two edges."""
        assert rect_edges(0.0, 100.0, 100.0, 100.0) == {RectEdge.LEFT, RectEdge.TOP}

    def test_tolerance(self):
        """Points within the tolerance count as on the edge."""
        assert rect_edges(0.5, 40.0, 100.0, 100.0) == frozenset()
        assert rect_edges(0.5, 40.0, 100.0, 100.0, tolerance=1.0) == {RectEdge.LEFT}

    def test_inward_normals(self):
        """Every edge has a unit inward normal."""
        assert set(EDGE_INWARD_NORMALS) == set(RectEdge)
        for nx, ny in EDGE_INWARD_NORMALS.values():
            assert nx * nx + ny * ny == pytest.approx(1.0)


class TestPlacedInstance:
    """Tests for PlacedInstance."""

    def test_defaults(self):
        """Rotation, scale, color and animate have defaults."""
        instance = PlacedInstance(
            object_id="rock-0000",
            object_type="rock",
            prefab="rock_a",
            transform=Transform(position=(1.0, 2.0, 3.0)),
        )
        assert instance.transform.rotation == (0.0, 0.0, 0.0)
        assert instance.transform.scale == (1.0, 1.0, 1.0)
        assert instance.color is None
        assert not instance.animate

    def test_positions(self):
        """Position and planar position read from the transform."""
        instance = PlacedInstance(
            object_id="tree-0000",
            object_type="tree",
            prefab="pine",
            transform=Transform(position=(1.0, 2.0, 3.0)),
        )
        assert instance.position == (1.0, 2.0, 3.0)
        assert instance.planar_position() == (1.0, 3.0)

    def test_json_round_trip(self):
        """Instances survive a JSON dump and reload."""
        instance = PlacedInstance(
            object_id="grass-0001",
            object_type="grass",
            prefab="grass_a",
            transform=Transform(position=(1.5, 2.0, 3.0), rotation=(0.0, 90.0, 0.0)),
            color=(0.1, 0.2, 0.3),
            animate=True,
        )
        assert PlacedInstance.model_validate(instance.model_dump(mode="json")) == instance
