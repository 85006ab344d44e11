# src/kludgesf/selfforce/potentials.py
"""
辐射反作用势 (PotentialAssembly)，arXiv:1109.0572v2：

    V^RR   = -x^i x^j M^(5)_ij / 5 - r² x^i x^j M^(7)_ij / 70 + x^i x^j x^k M^(7)_ijk / 189      (Eq. 44)
    V_i^RR = x^<ijk> M^(6)_jk / 21 - 4 ε_ijk x^j x^l S^(5)_kl / 45                          (Eq. 45)

以及它们对 t 的偏导 (Eqs. 7.25, 7.26) 和对 x^a 的偏导 (Eqs. 7.30, 7.34)。
势是 x 的多项式，矩的导数在求值点上当作常数，所以空间导数就是对 x 的多项式求导。

x 为求值点的谐和坐标位置，形状 (3,)。
"""

from __future__ import annotations

import numpy as np

from ..utils.tensor_algebra import DELTA_3, LEVI_CIVITA, dot3d, stf3_gradient, stf3_tensor


def v_rr(x, Mij5, Mij7, Mijk7) -> float:
    """Eq. 44"""
    r2 = dot3d(x, x)
    return float(-np.einsum('i,j,ij->', x, x, Mij5) / 5.0
                 - r2 * np.einsum('i,j,ij->', x, x, Mij7) / 70.0
                 + np.einsum('i,j,k,ijk->', x, x, x, Mijk7) / 189.0)


def dv_rr_dt(x, Mij6, Mij8, Mijk8) -> float:
    """Eq. 7.25（形式与 Eq. 44 相同，矩的导数各升一阶）"""
    return v_rr(x, Mij6, Mij8, Mijk8)


def dv_rr_dx(x, Mij5, Mij7, Mijk7) -> np.ndarray:
    """
    ∂_a V^RR (Eq. 7.30)
        = -(2/5) x_j M5_aj + (3/189) x_i x_j M7_aij - (1/35)(x_a x_i x_j M7_ij + r² x_j M7_aj)
    """
    r2 = dot3d(x, x)
    return (-(2.0 / 5.0) * Mij5 @ x
            + (3.0 / 189.0) * np.einsum('aij,i,j->a', Mijk7, x, x)
            - (1.0 / 35.0) * (x * np.einsum('i,j,ij->', x, x, Mij7) + r2 * (Mij7 @ x)))


def vi_rr(x, Mij6, Sij5) -> np.ndarray:
    """Eq. 45"""
    return np.einsum('ijk,jk->i', stf3_tensor(x), Mij6) / 21.0 + vi_rr_current_part(x, Sij5)


def dvi_rr_dt(x, Mij7, Sij6) -> np.ndarray:
    """Eq. 7.26"""
    return vi_rr(x, Mij7, Sij6)


def dvi_rr_dx(x, Mij6, Sij5) -> np.ndarray:
    """
    dVi[i, a] = ∂_a V_i^RR (Eq. 7.34)
        = ∂_a x^<ijk> M6_jk / 21 - (4/45) ε_ijk (δ_ja x_l + x_j δ_la) S5_kl
    """
    mass = np.einsum('ijka,jk->ia', stf3_gradient(x), Mij6) / 21.0
    current = (np.einsum('ijk,ja,l,kl->ia', LEVI_CIVITA, DELTA_3, x, Sij5)
               + np.einsum('ijk,j,la,kl->ia', LEVI_CIVITA, x, DELTA_3, Sij5))
    return mass - 4.0 * current / 45.0


def vi_rr_current_part(x, Sij5) -> np.ndarray:
    """V_i^RR 中由流四极矩贡献的部分：-4 ε_ijk x^j x^l S^(5)_kl / 45"""
    return -4.0 * np.einsum('ijk,j,l,kl->i', LEVI_CIVITA, x, x, Sij5) / 45.0
