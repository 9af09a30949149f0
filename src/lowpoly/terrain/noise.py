"""Noise functions for terrain elevation.

Provides lattice value noise and the multi-octave sum used to build the
height field. Everything is vectorized over numpy arrays.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

_MASK32 = np.uint64(0xFFFFFFFF)
_HASH_X = np.uint64(374761393)
_HASH_Y = np.uint64(668265263)
_HASH_MIX = np.uint64(1274126177)


def _lattice_hash(ix: NDArray[np.int64], iy: NDArray[np.int64]) -> NDArray[np.float64]:
    """Hash integer lattice coordinates to values in [0, 1]."""
    hx = ix.astype(np.uint64) * _HASH_X
    hy = iy.astype(np.uint64) * _HASH_Y
    h = (hx + hy) & _MASK32
    h = ((h ^ (h >> np.uint64(13))) * _HASH_MIX) & _MASK32
    h = h ^ (h >> np.uint64(16))
    return h.astype(np.float64) / float(_MASK32)


def quintic_fade(t: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quintic interpolation curve 6t^5 - 15t^4 + 10t^3."""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def value_noise(x: ArrayLike, y: ArrayLike) -> NDArray[np.float64] | float:
    """Evaluate 2D value noise.

    Random values sit on the integer lattice and are blended with a quintic
    fade, so the result is continuous with continuous first and second
    derivatives.

    Args:
        x: X coordinates (scalar or array).
        y: Y coordinates, broadcastable against ``x``.

    Returns:
        Noise values in [0, 1], same shape as the broadcast inputs. A float
        when both inputs are scalars.
    """
    xs, ys = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64)
    )
    shape = xs.shape
    xs = np.atleast_1d(xs).ravel()
    ys = np.atleast_1d(ys).ravel()

    x0 = np.floor(xs)
    y0 = np.floor(ys)
    u = quintic_fade(xs - x0)
    v = quintic_fade(ys - y0)

    ix = x0.astype(np.int64)
    iy = y0.astype(np.int64)
    v00 = _lattice_hash(ix, iy)
    v10 = _lattice_hash(ix + 1, iy)
    v01 = _lattice_hash(ix, iy + 1)
    v11 = _lattice_hash(ix + 1, iy + 1)

    bottom = v00 + (v10 - v00) * u
    top = v01 + (v11 - v01) * u
    result = (bottom + (top - bottom) * v).reshape(shape)

    if shape == ():
        return float(result)
    return result


def octave_elevation(
    points: ArrayLike,
    octave_seeds: ArrayLike,
    persistence: float,
    frequency_base: float,
    elevation_scale: float,
    sample_scale: tuple[float, float],
) -> NDArray[np.float64]:
    """Sum octaves of value noise into elevations.

    Amplitude starts at ``persistence ** octaves`` and is divided by
    ``persistence`` each octave while frequency is multiplied by
    ``frequency_base``. The sum is normalized by the total amplitude and
    scaled by ``elevation_scale``.

    Args:
        points: Planar points, shape (N, 2).
        octave_seeds: One coordinate offset per octave.
        persistence: Amplitude ratio between octaves.
        frequency_base: Frequency ratio between octaves.
        elevation_scale: Output scale.
        sample_scale: Per-axis factor converting tile coordinates to noise
            coordinates at the base frequency.

    Returns:
        Elevation per point, shape (N,).
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    seeds = np.asarray(octave_seeds, dtype=np.float64).reshape(-1)
    octaves = len(seeds)

    elevation = np.zeros(len(pts), dtype=np.float64)
    if octaves == 0:
        return elevation

    amplitude = persistence**octaves
    frequency = 1.0
    max_value = 0.0

    for seed in seeds:
        nx = seed + pts[:, 0] * sample_scale[0] * frequency
        ny = seed + pts[:, 1] * sample_scale[1] * frequency
        elevation += (value_noise(nx, ny) - 0.5) * amplitude
        max_value += amplitude
        amplitude /= persistence
        frequency *= frequency_base

    return elevation / max_value * elevation_scale
