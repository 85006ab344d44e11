# src/kludgesf/waveforms/multipole_radiation.py
"""
多极辐射的 TT 应变张量与偏振投影 (WaveformProjector)。

h_ij (arXiv:1109.0572v2 Eq. 84)：
    h_ij = 2 M^(2)_ij / r + 2 M^(3)_ijk n_k / (3r) + M^(4)_ijkl n_k n_l / (6r)
           + 4 (ε_kli S^(2)_jk + ε_klj S^(2)_ik) n_l / (3r)
           + (ε_kli S^(3)_jkm + ε_klj S^(3)_ikm) n_l n_m / (2r)
对每个采样点向量化（最后一个轴为时间）。

偏振 (Eqs. 6.15-6.17)：
    h₊ = (h_ΘΘ - h_ΦΦ) / 2,   h× = h_ΘΦ
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..constants import distance_in_mbh_units
from ..utils.tensor_algebra import LEVI_CIVITA


@dataclass
class ObserverInfo:
    R: float      # 距离（以 M 为单位）
    theta: float
    phi: float

    @classmethod
    def from_gpc(cls, d_gpc: float, M_solar: float, theta: float, phi: float) -> "ObserverInfo":
        return cls(R=distance_in_mbh_units(d_gpc, M_solar), theta=theta, phi=phi)

    @property
    def n(self) -> np.ndarray:
        """指向观测者的单位矢量"""
        st = np.sin(self.theta)
        return np.array([st * np.cos(self.phi), st * np.sin(self.phi), np.cos(self.theta)])


def strain_tensor(observer: ObserverInfo, Mij2, Mijk3, Mijkl4, Sij2, Sijk3) -> np.ndarray:
    """h_ij，形状 (3, 3, N)"""
    n = observer.n
    r = observer.R
    eps = LEVI_CIVITA

    h = 2.0 * Mij2 / r
    h = h + 2.0 * np.einsum('ijkt,k->ijt', Mijk3, n) / (3.0 * r)
    h = h + 4.0 * (np.einsum('kli,jkt,l->ijt', eps, Sij2, n)
                   + np.einsum('klj,ikt,l->ijt', eps, Sij2, n)) / (3.0 * r)
    h = h + np.einsum('ijklt,k,l->ijt', Mijkl4, n, n) / (6.0 * r)
    h = h + (np.einsum('kli,jkmt,l,m->ijt', eps, Sijk3, n, n)
             + np.einsum('klj,ikmt,l,m->ijt', eps, Sijk3, n, n)) / (2.0 * r)
    return h


def project_to_tt(h_tensor, observer: ObserverInfo):
    """球坐标基 (e_Θ, e_Φ) 上的投影，返回 (h_plus, h_cross)。"""
    theta = observer.theta
    phi = observer.phi
    ct = np.cos(theta); st = np.sin(theta)
    cp = np.cos(phi); sp = np.sin(phi)
    s2p = np.sin(2 * phi); c2p = np.cos(2 * phi)

    hxx = h_tensor[0, 0]; hyy = h_tensor[1, 1]; hzz = h_tensor[2, 2]
    hxy = h_tensor[0, 1]; hxz = h_tensor[0, 2]; hyz = h_tensor[1, 2]

    h_TT = (ct**2) * (hxx * cp**2 + hxy * s2p + hyy * sp**2) + \
        hzz * (st**2) - np.sin(2 * theta) * (hxz * cp + hyz * sp)
    h_TP = ct * (-0.5 * hxx * s2p + hxy * c2p + 0.5 * hyy * s2p) + \
        st * (hxz * sp - hyz * cp)
    h_PP = hxx * sp**2 - hxy * s2p + hyy * cp**2

    h_plus = 0.5 * (h_TT - h_PP)
    h_cross = h_TP
    return h_plus, h_cross
