"""Piecewise cubic Bezier paths with arc-length sampling.

Points are 3D ``(x, elevation, z)``; planar distances and normals use the
x/z components only.

The control polygon is stored as ``[A0, C0, C1, A1, C2, C3, A2, ...]``:
every anchor is followed by the outgoing control of its segment, and
preceded by the incoming control of the previous one.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

# Control distance as a fraction of the distance to the neighbouring anchor
AUTO_CONTROL_LENGTH = 0.3

# Dense polyline resolution used for arc-length lookups
SAMPLES_PER_SEGMENT = 64


def _normalized(vector: NDArray[np.float64]) -> NDArray[np.float64]:
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector
    return vector / norm


def cubic_point(p: NDArray[np.float64], t: ArrayLike) -> NDArray[np.float64]:
    """Evaluate a cubic Bezier with control points ``p`` (4, 3) at ``t``."""
    t = np.asarray(t, dtype=np.float64)[..., None]
    mt = 1.0 - t
    return (
        mt * mt * mt * p[0]
        + 3.0 * mt * mt * t * p[1]
        + 3.0 * mt * t * t * p[2]
        + t * t * t * p[3]
    )


def cubic_derivative(p: NDArray[np.float64], t: ArrayLike) -> NDArray[np.float64]:
    t = np.asarray(t, dtype=np.float64)[..., None]
    mt = 1.0 - t
    return (
        3.0 * mt * mt * (p[1] - p[0])
        + 6.0 * mt * t * (p[2] - p[1])
        + 3.0 * t * t * (p[3] - p[2])
    )


class BezierPath:
    """Open cubic Bezier path through a sequence of anchors.

    Global parameters ``t`` in ``[0, 1]`` passed to ``point_at`` and friends
    are fractions of the arc length, so equal steps in ``t`` are equal
    distances along the curve.
    """

    def __init__(self, anchors: ArrayLike, controls: ArrayLike | None = None):
        """Build a path.

        Args:
            anchors: Anchor points, shape (K, 3) with K >= 2.
            controls: Optional control points, shape (2 * (K - 1), 3), two
                per segment. Automatic aligned controls are used when omitted.
        """
        anchor_array = np.asarray(anchors, dtype=np.float64).reshape(-1, 3)
        if len(anchor_array) < 2:
            raise ValueError(f"A path needs at least 2 anchors, got {len(anchor_array)}")

        count = 3 * len(anchor_array) - 2
        self._points = np.zeros((count, 3), dtype=np.float64)
        self._points[0::3] = anchor_array

        if controls is None:
            self.auto_set_controls()
        else:
            control_array = np.asarray(controls, dtype=np.float64).reshape(-1, 3)
            expected = 2 * (len(anchor_array) - 1)
            if len(control_array) != expected:
                raise ValueError(f"Expected {expected} control points, got {len(control_array)}")
            self._points[1::3] = control_array[0::2]
            self._points[2::3] = control_array[1::2]
        self._invalidate()

    @property
    def points(self) -> NDArray[np.float64]:
        """Copy of the full control polygon."""
        return self._points.copy()

    @property
    def anchors(self) -> NDArray[np.float64]:
        return self._points[0::3].copy()

    @property
    def segment_count(self) -> int:
        return (len(self._points) - 1) // 3

    @staticmethod
    def anchor_index(anchor: int) -> int:
        """Control polygon index of the ``anchor``-th anchor."""
        return anchor * 3

    def segment(self, index: int) -> NDArray[np.float64]:
        """The 4 control points of segment ``index``."""
        start = index * 3
        return self._points[start : start + 4].copy()

    def auto_set_controls(self) -> None:
        """Place every control point automatically.

        Interior anchors get controls aligned along the bisector of their
        neighbours, at ``AUTO_CONTROL_LENGTH`` of each neighbour distance.
        End controls sit halfway between the end anchor and the next control.
        """
        anchors = self._points[0::3]
        last = len(anchors) - 1
        for i, anchor in enumerate(anchors):
            direction = np.zeros(3)
            distances = [0.0, 0.0]
            if i > 0:
                offset = anchors[i - 1] - anchor
                direction += _normalized(offset)
                distances[0] = float(np.linalg.norm(offset))
            if i < last:
                offset = anchors[i + 1] - anchor
                direction -= _normalized(offset)
                distances[1] = -float(np.linalg.norm(offset))
            direction = _normalized(direction)

            for side in (0, 1):
                control = i * 3 + side * 2 - 1
                if 0 <= control < len(self._points):
                    self._points[control] = anchor + direction * distances[side] * AUTO_CONTROL_LENGTH

        self._points[1] = (self._points[0] + self._points[2]) * 0.5
        self._points[-2] = (self._points[-1] + self._points[-3]) * 0.5
        self._invalidate()

    def move_anchor(self, index: int, position: ArrayLike) -> None:
        """Move the anchor at polygon ``index``; its controls follow it."""
        if index % 3 != 0:
            raise ValueError(f"Point {index} is a control point, not an anchor")
        target = np.asarray(position, dtype=np.float64)
        delta = target - self._points[index]
        self._points[index] = target
        for control in (index - 1, index + 1):
            if 0 <= control < len(self._points):
                self._points[control] += delta
        self._invalidate()

    def move_control(self, index: int, position: ArrayLike, aligned: bool = True) -> None:
        """Move the control point at polygon ``index``.

        With ``aligned`` the opposite control of the same anchor is rotated
        onto the mirrored direction, keeping its own distance, so the curve
        stays tangent-continuous through the anchor.
        """
        if index % 3 == 0:
            raise ValueError(f"Point {index} is an anchor, not a control point")
        self._points[index] = np.asarray(position, dtype=np.float64)

        if aligned:
            anchor = index + 1 if index % 3 == 2 else index - 1
            opposite = anchor + (anchor - index)
            if 0 <= opposite < len(self._points):
                distance = np.linalg.norm(self._points[opposite] - self._points[anchor])
                direction = _normalized(self._points[anchor] - self._points[index])
                self._points[opposite] = self._points[anchor] + direction * distance
        self._invalidate()

    def split_segment(self, segment_index: int, t: float) -> int:
        """Insert an anchor into a segment without changing the curve's shape.

        Returns:
            Polygon index of the new anchor.
        """
        if not 0 <= segment_index < self.segment_count:
            raise IndexError(f"Segment {segment_index} out of range")
        p0, p1, p2, p3 = self.segment(segment_index)
        q0 = p0 + (p1 - p0) * t
        q1 = p1 + (p2 - p1) * t
        q2 = p2 + (p3 - p2) * t
        r0 = q0 + (q1 - q0) * t
        r1 = q1 + (q2 - q1) * t
        s = r0 + (r1 - r0) * t

        start = segment_index * 3
        replacement = np.array([p0, q0, r0, s, r1, q2, p3])
        self._points = np.concatenate(
            [self._points[:start], replacement, self._points[start + 4 :]]
        )
        self._invalidate()
        return start + 3

    def _invalidate(self) -> None:
        self._table: tuple[NDArray, NDArray] | None = None

    def _arc_table(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Cumulative arc length at a dense set of global parameters."""
        if self._table is None:
            u = np.linspace(0.0, 1.0, SAMPLES_PER_SEGMENT + 1)
            params = [np.zeros(1)]
            polyline = [self._points[:1]]
            for index in range(self.segment_count):
                params.append(index + u[1:])
                polyline.append(cubic_point(self.segment(index), u[1:]))
            params_array = np.concatenate(params)
            dense = np.concatenate(polyline)
            steps = np.linalg.norm(np.diff(dense, axis=0), axis=1)
            lengths = np.concatenate([[0.0], np.cumsum(steps)])
            self._table = (params_array, lengths)
        return self._table

    @property
    def length(self) -> float:
        """Arc length of the whole path."""
        return float(self._arc_table()[1][-1])

    def _parameter_at(self, t: ArrayLike) -> NDArray[np.float64]:
        params, lengths = self._arc_table()
        distance = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0) * lengths[-1]
        return np.interp(distance, lengths, params)

    def _split_parameter(self, s: NDArray[np.float64]) -> tuple[NDArray, NDArray]:
        segment = np.minimum(np.floor(s).astype(np.int64), self.segment_count - 1)
        return segment, s - segment

    def _evaluate(self, t: ArrayLike, derivative: bool) -> NDArray[np.float64]:
        s = np.atleast_1d(self._parameter_at(t))
        segments, local = self._split_parameter(s)
        result = np.empty((len(s), 3), dtype=np.float64)
        function = cubic_derivative if derivative else cubic_point
        for index in np.unique(segments):
            mask = segments == index
            result[mask] = function(self.segment(int(index)), local[mask])
        return result

    def point_at(self, t: float) -> NDArray[np.float64]:
        """Point at arc-length fraction ``t``."""
        return self._evaluate([t], derivative=False)[0]

    def tangent_at(self, t: float) -> NDArray[np.float64]:
        """Unit tangent at arc-length fraction ``t``."""
        return _normalized(self._evaluate([t], derivative=True)[0])

    def normal_at(self, t: float) -> NDArray[np.float64]:
        """Unit planar normal at ``t``, pointing left of the direction of travel."""
        tangent = self._evaluate([t], derivative=True)[0]
        return _normalized(np.array([-tangent[2], 0.0, tangent[0]]))

    def sample_evenly_spaced(self, count: int) -> NDArray[np.float64]:
        """``count`` points at equal arc-length steps, both ends included."""
        if count < 2:
            raise ValueError(f"count must be at least 2, got {count}")
        return self._evaluate(np.linspace(0.0, 1.0, count), derivative=False)

    def points_along_path(self, spacing: float) -> NDArray[np.float64]:
        """Points every ``spacing`` units of arc length, ending at the last anchor."""
        if spacing <= 0:
            raise ValueError(f"spacing must be positive, got {spacing}")
        length = self.length
        if length == 0:
            return self._points[:1].copy()

        distances = np.arange(0.0, length, spacing)
        if length - distances[-1] > spacing * 1e-6:
            distances = np.append(distances, length)
        else:
            distances[-1] = length
        return self._evaluate(distances / length, derivative=False)
