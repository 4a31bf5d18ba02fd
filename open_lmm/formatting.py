"""Human-readable rendering of configuration values for log messages."""

from __future__ import annotations

import math
from typing import Any

import numpy as np


def _format_float(value: float) -> str:
    """Shortest round-trip text of a float, without a trailing ``.0``."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _rotation_to_quaternion(rotation: Any) -> np.ndarray:
    """Quaternion ``(x, y, z, w)`` of a 3x3 rotation matrix."""
    mat = np.asarray(rotation, dtype=float)
    if mat.shape != (3, 3):
        raise ValueError(f"rotation must be 3x3, got shape {mat.shape}")
    quat = np.zeros(4)
    diag_sum = float(mat[0, 0] + mat[1, 1] + mat[2, 2])
    if diag_sum > 0:
        t = math.sqrt(diag_sum + 1.0)
        quat[3] = 0.5 * t
        t = 0.5 / t
        quat[0] = (mat[2, 1] - mat[1, 2]) * t
        quat[1] = (mat[0, 2] - mat[2, 0]) * t
        quat[2] = (mat[1, 0] - mat[0, 1]) * t
    else:
        i = 0
        if mat[1, 1] > mat[0, 0]:
            i = 1
        if mat[2, 2] > mat[i, i]:
            i = 2
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = math.sqrt(mat[i, i] - mat[j, j] - mat[k, k] + 1.0)
        quat[i] = 0.5 * t
        t = 0.5 / t
        quat[3] = (mat[k, j] - mat[j, k]) * t
        quat[j] = (mat[j, i] + mat[i, j]) * t
        quat[k] = (mat[k, i] + mat[i, k]) * t
    return quat


def format_vector(value: Any) -> str:
    """Render a vector as ``vec(a,b,...)`` with six decimals per entry."""
    return "vec(" + ",".join(f"{float(v):.6f}" for v in np.ravel(value)) + ")"


def format_quaternion(quat: Any) -> str:
    """Render a quaternion given as ``(x, y, z, w)``."""
    x, y, z, w = (float(v) for v in quat)
    return f"quat({x:.6f},{y:.6f},{z:.6f},{w:.6f})"


def format_isometry(pose: Any) -> str:
    """Render a 4x4 rigid transform as translation plus quaternion."""
    matrix = np.asarray(pose, dtype=float)
    if matrix.shape != (4, 4):
        raise ValueError(f"pose must be 4x4, got shape {matrix.shape}")
    values = [*matrix[:3, 3], *_rotation_to_quaternion(matrix[:3, :3])]
    return "se3(" + ",".join(f"{v:.6f}" for v in values) + ")"


def convert_to_string(value: Any) -> str:
    """Render a configuration value the way it appears in log messages."""
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        return _format_float(float(value))
    if isinstance(value, str):
        return value
    if isinstance(value, np.ndarray):
        if value.ndim == 1:
            return format_vector(value)
        if value.shape == (4, 4):
            return format_isometry(value)
    if isinstance(value, (list, tuple, np.ndarray)):
        return "[" + ",".join(convert_to_string(v) for v in value) + "]"
    return str(value)