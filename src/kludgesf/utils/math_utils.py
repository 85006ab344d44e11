# src/kludgesf/utils/math_utils.py
"""
有限差分模板库。

- fornberg_weights: Fornberg (1988) 递推，任意网格点上 0..m 阶导数的差分权重；
- compute_derivative: 在均匀采样序列的某个下标处求 1-6 阶导数，
  内部点用中心模板，靠近端点时把同样宽度的窗口平移进序列内（单边模板）；
- finite_difference_series: 在所有采样点上求导（波形计算用）。

与其他模块的关系：
- multipole.derivatives: 多极矩高阶导数 (Mij5 ... Mij8 等) 的数值部分；
- orbits.mino_time / multipole.derivatives: Mino 分支里对 λ 的导数。

注意：
- 步长 h 由调用者给定，不做自适应；h 太小会有舍入误差，h 太大截断误差变大。
"""

from __future__ import annotations

from functools import lru_cache

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

MAX_ORDER = 6


def fornberg_weights(offsets, order: int) -> np.ndarray:
    """
    返回 c[j, k]：在 offsets[j] 处采样、于 0 点求 k 阶导数的权重 (k = 0..order)。
    offsets 以步长 h 为单位。
    """
    z = np.asarray(offsets, dtype=float)
    n = len(z)
    c = np.zeros((n, order + 1))
    c1 = 1.0
    c4 = z[0]
    c[0, 0] = 1.0
    for i in range(1, n):
        mn = min(i, order)
        c2 = 1.0
        c5 = c4
        c4 = z[i]
        for j in range(i):
            c3 = z[i] - z[j]
            c2 *= c3
            if j == i - 1:
                for k in range(mn, 0, -1):
                    c[i, k] = c1 * (k * c[i - 1, k - 1] - c5 * c[i - 1, k]) / c2
                c[i, 0] = -c1 * c5 * c[i - 1, 0] / c2
            for k in range(mn, 0, -1):
                c[j, k] = (c4 * c[j, k] - k * c[j, k - 1]) / c3
            c[j, 0] = c4 * c[j, 0] / c3
        c1 = c2
    return c


def stencil_size(order: int, accuracy: int = 6) -> int:
    """中心模板所需的点数，例如 6 阶导数、6 阶精度需要 11 个点。"""
    return 2 * ((order + 1) // 2) - 1 + accuracy


@lru_cache(maxsize=None)
def _weights(order: int, offsets: tuple) -> np.ndarray:
    w = fornberg_weights(offsets, order)[:, order]
    w.setflags(write=False)
    return w


def _window(compute_at: int, n_points: int, size: int) -> tuple:
    start = min(max(compute_at - size // 2, 0), n_points - size)
    return start, tuple(range(start - compute_at, start - compute_at + size))


def compute_derivative(order: int, compute_at: int, data, h: float,
                       n_points: int = None, accuracy: int = 6) -> float:
    """
    均匀步长 h 的序列 data 在下标 compute_at 处的 order 阶导数。

    n_points 缺省为 len(data)。序列长度不足一个模板时抛出 ValueError。
    """
    if not 1 <= order <= MAX_ORDER:
        raise ValueError(f"derivative order must be in 1..{MAX_ORDER}, got {order}")
    data = np.asarray(data)
    if n_points is None:
        n_points = len(data)
    size = stencil_size(order, accuracy)
    if n_points < size:
        raise ValueError(
            f"{n_points} points are too few for a {size}-point stencil "
            f"(order {order}, accuracy {accuracy})")
    start, offsets = _window(compute_at, n_points, size)
    w = _weights(order, offsets)
    return float(np.dot(w, data[start:start + size])) / h**order


def compute_first_derivative(compute_at, data, h, n_points=None, accuracy=6):
    return compute_derivative(1, compute_at, data, h, n_points, accuracy)


def compute_second_derivative(compute_at, data, h, n_points=None, accuracy=6):
    return compute_derivative(2, compute_at, data, h, n_points, accuracy)


def compute_third_derivative(compute_at, data, h, n_points=None, accuracy=6):
    return compute_derivative(3, compute_at, data, h, n_points, accuracy)


def compute_fourth_derivative(compute_at, data, h, n_points=None, accuracy=6):
    return compute_derivative(4, compute_at, data, h, n_points, accuracy)


def compute_fifth_derivative(compute_at, data, h, n_points=None, accuracy=6):
    return compute_derivative(5, compute_at, data, h, n_points, accuracy)


def compute_sixth_derivative(compute_at, data, h, n_points=None, accuracy=6):
    return compute_derivative(6, compute_at, data, h, n_points, accuracy)


def finite_difference_series(fvals, h: float, order: int, accuracy: int = 6) -> np.ndarray:
    """
    在所有采样点上求 order 阶导数。
    内部点共用一组中心权重（滑动窗口点积），两端逐点用平移后的单边模板。
    """
    fvals = np.asarray(fvals, dtype=float)
    n_points = len(fvals)
    size = stencil_size(order, accuracy)
    if n_points < size:
        raise ValueError(
            f"{n_points} points are too few for a {size}-point stencil "
            f"(order {order}, accuracy {accuracy})")
    half = size // 2
    df = np.empty(n_points)

    _, offsets = _window(half, n_points, size)
    w = _weights(order, offsets)
    df[half:n_points - (size - 1 - half)] = sliding_window_view(fvals, size) @ w / h**order

    for i in list(range(half)) + list(range(n_points - (size - 1 - half), n_points)):
        df[i] = compute_derivative(order, i, fvals, h, n_points, accuracy)
    return df
