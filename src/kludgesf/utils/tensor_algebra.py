# src/kludgesf/utils/tensor_algebra.py
"""
张量代数工具 (TensorAlgebra)。

- STF (symmetric trace-free) 投影：x^{<ij>}、两个不同矢量的 u^{<i} v^{j>}、x^{<ijk>} (Eq. 46)；
- x^{<ijk>} 对 x^a 的梯度（势函数空间导数用，Eq. 7.34）；
- Levi-Civita 符号表、Kronecker delta、Minkowski 度规；
- 3D / 4D 点积与模长。

约定：
- 空间矢量的分量放在第 0 轴，
  形状 (3,) 为单个时刻，(3, N) 为 N 个采样点，所有函数对两者都适用；
- 常数表在 import 时构造一次，并设为只读。
"""

from __future__ import annotations

import itertools

import numpy as np


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def _levi_civita_table() -> np.ndarray:
    eps = np.zeros((3, 3, 3))
    for perm in itertools.permutations(range(3)):
        # 逆序数的奇偶决定符号
        inversions = sum(1 for p, q in itertools.combinations(perm, 2) if p > q)
        eps[perm] = -1.0 if inversions % 2 else 1.0
    return eps


# ε_{ijk}; LEVI_CIVITA[k, l] 即 [ε_{kl1}, ε_{kl2}, ε_{kl3}]
LEVI_CIVITA = _readonly(_levi_civita_table())

# Minkowski 度规 η_{μν} = diag(-1, 1, 1, 1) 及其空间部分
ETA_4 = _readonly(np.diag([-1.0, 1.0, 1.0, 1.0]))
ETA_3 = _readonly(np.eye(3))
DELTA_3 = ETA_3


def kronecker_delta(i: int, j: int) -> float:
    return 1.0 if i == j else 0.0


# ---------------------------------------------------------------------
# 点积 / 模长
# ---------------------------------------------------------------------

def dot3d(u, v):
    return u[0] * v[0] + u[1] * v[1] + u[2] * v[2]


def norm2_3d(u):
    return u[0] * u[0] + u[1] * u[1] + u[2] * u[2]


def norm_3d(u):
    return np.sqrt(norm2_3d(u))


def dot4d(u, v):
    return u[0] * v[0] + u[1] * v[1] + u[2] * v[2] + u[3] * v[3]


def norm2_4d(u):
    return u[0] * u[0] + u[1] * u[1] + u[2] * u[2] + u[3] * u[3]


def norm_4d(u):
    return np.sqrt(norm2_4d(u))


def otimes(a, b=None) -> np.ndarray:
    """张量积 a ⊗ b（b 缺省时为 a ⊗ a）。"""
    if b is None:
        b = a
    return np.einsum('i...,j...->ij...', np.asarray(a), np.asarray(b))


# ---------------------------------------------------------------------
# STF 投影
# ---------------------------------------------------------------------

def stf2(u, i: int, j: int):
    """x^{<ij>} = u_i u_j - δ_ij u·u / 3"""
    return u[i] * u[j] - dot3d(u, u) * kronecker_delta(i, j) / 3.0


def stf2_pair(u, v, i: int, j: int):
    """两个不同矢量的 STF 投影 u^{<i} v^{j>}"""
    return (u[i] * v[j] + u[j] * v[i]) / 2.0 - dot3d(u, v) * kronecker_delta(i, j) / 3.0


def stf3(u, i: int, j: int, k: int):
    """x^{<ijk>} (Eq. 46)"""
    return u[i] * u[j] * u[k] - (1.0 / 5.0) * dot3d(u, u) * (
        kronecker_delta(i, j) * u[k]
        + kronecker_delta(j, k) * u[i]
        + kronecker_delta(k, i) * u[j]
    )


def stf3_tensor(x) -> np.ndarray:
    """完整的 x^{<ijk>}，形状 (3, 3, 3) 或 (3, 3, 3, N)。"""
    x = np.asarray(x, dtype=float)
    r2 = dot3d(x, x)
    d = DELTA_3
    xxx = np.einsum('i...,j...,k...->ijk...', x, x, x)
    trace = (np.einsum('ij,k...->ijk...', d, x)
             + np.einsum('jk,i...->ijk...', d, x)
             + np.einsum('ki,j...->ijk...', d, x))
    return xxx - (1.0 / 5.0) * r2 * trace


def stf3_gradient(x) -> np.ndarray:
    """
    ∂ x^{<ijk>} / ∂ x^a，返回 G[i, j, k, a]（只支持单个时刻 x.shape == (3,)）。

    = δ_ia x_j x_k + x_i δ_ja x_k + x_i x_j δ_ka
      - (1/5) [ 2 x_a (δ_ij x_k + δ_jk x_i + δ_ki x_j)
                + r^2 (δ_ij δ_ka + δ_jk δ_ia + δ_ki δ_ja) ]
    """
    x = np.asarray(x, dtype=float)
    r2 = dot3d(x, x)
    d = DELTA_3
    grad = (np.einsum('ia,j,k->ijka', d, x, x)
            + np.einsum('i,ja,k->ijka', x, d, x)
            + np.einsum('i,j,ka->ijka', x, x, d))
    trace = (np.einsum('ij,k->ijk', d, x)
             + np.einsum('jk,i->ijk', d, x)
             + np.einsum('ki,j->ijk', d, x))
    trace_delta = (np.einsum('ij,ka->ijka', d, d)
                   + np.einsum('jk,ia->ijka', d, d)
                   + np.einsum('ki,ja->ijka', d, d))
    grad -= (1.0 / 5.0) * (2.0 * np.einsum('ijk,a->ijka', trace, x) + r2 * trace_delta)
    return grad
