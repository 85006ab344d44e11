# src/kludgesf/geometry/harmonic_coords.py
"""
Boyer-Lindquist <-> 谐和 (harmonic) Cartesian 坐标变换。

定义（arXiv:1109.0572v2 Eq. 29）：
    x + i y = (r - M + i a) e^{iϕ} sinθ
    z       = (r - M) cosθ

提供：
- 位置 / 速度 / 加速度的正变换与逆变换；
- Jacobian  J[i, m]   = ∂x_H^i / ∂x_BL^m   及其逆 ∂x_BL / ∂x_H；
- Hessian   H[i, m, n] = ∂²x_H^i / ∂x_BL^m ∂x_BL^n，以及 ∂²x_BL^m / ∂x_H^i ∂x_H^k；
- 谐和坐标下的度规 g^H_{μν} = Λ^α_μ Λ^β_ν g^BL_{αβ}（时间坐标不变）及其逆。

约定：
- 空间矢量分量在第 0 轴，形状 (3,) 或 (3, N)；矩阵 (3, 3) 或 (3, 3, N)。
- 度规相关函数只处理单个位置。

与其他模块的关系：
- orbits.trajectory: 阶段 1 的坐标变换（对所有采样点向量化）；
- selfforce.metric_coupling: Jacobian / Hessian 与谐和度规；
- selfforce.assembler: 把谐和坐标下的自加速度变回 BL 坐标。
"""

from __future__ import annotations

import numpy as np


def to_harmonic_position(x_bl, a: float, M: float = 1.0) -> np.ndarray:
    r, th, ph = np.asarray(x_bl, dtype=float)
    rho = r - M
    s = np.sin(th)
    return np.array([
        s * (rho * np.cos(ph) - a * np.sin(ph)),
        s * (rho * np.sin(ph) + a * np.cos(ph)),
        rho * np.cos(th),
    ])


def from_harmonic_position(x_h, a: float, M: float = 1.0) -> np.ndarray:
    """逆变换：ρ² 取 ρ⁴ - (R² - a²) ρ² - a² z² = 0 的正根。"""
    x, y, z = np.asarray(x_h, dtype=float)
    R2 = x * x + y * y + z * z
    b = R2 - a * a
    rho = np.sqrt(0.5 * (b + np.sqrt(b * b + 4.0 * a * a * z * z)))
    th = np.arccos(z / rho)
    ph = np.arctan2(y, x) - np.arctan2(a, rho)
    return np.array([rho + M, th, ph])


def harmonic_jacobian(x_bl, a: float, M: float = 1.0) -> np.ndarray:
    """J[i, m] = ∂x_H^i / ∂x_BL^m，m = (r, θ, ϕ)"""
    r, th, ph = np.asarray(x_bl, dtype=float)
    rho = r - M
    s, c = np.sin(th), np.cos(th)
    cp, sp = np.cos(ph), np.sin(ph)
    zero = np.zeros_like(rho)
    return np.array([
        [s * cp, c * (rho * cp - a * sp), -s * (rho * sp + a * cp)],
        [s * sp, c * (rho * sp + a * cp), s * (rho * cp - a * sp)],
        [c, -rho * s, zero],
    ])


def harmonic_hessian(x_bl, a: float, M: float = 1.0) -> np.ndarray:
    """H[i, m, n] = ∂²x_H^i / ∂x_BL^m ∂x_BL^n"""
    r, th, ph = np.asarray(x_bl, dtype=float)
    rho = r - M
    s, c = np.sin(th), np.cos(th)
    cp, sp = np.cos(ph), np.sin(ph)
    x = s * (rho * cp - a * sp)
    y = s * (rho * sp + a * cp)
    z = rho * c

    H = np.zeros((3, 3, 3) + np.shape(rho))
    # x
    H[0, 0, 1] = H[0, 1, 0] = c * cp
    H[0, 0, 2] = H[0, 2, 0] = -s * sp
    H[0, 1, 1] = -x
    H[0, 1, 2] = H[0, 2, 1] = c * (-rho * sp - a * cp)
    H[0, 2, 2] = -x
    # y
    H[1, 0, 1] = H[1, 1, 0] = c * sp
    H[1, 0, 2] = H[1, 2, 0] = s * cp
    H[1, 1, 1] = -y
    H[1, 1, 2] = H[1, 2, 1] = c * (rho * cp - a * sp)
    H[1, 2, 2] = -y
    # z
    H[2, 0, 1] = H[2, 1, 0] = -s
    H[2, 1, 1] = -z
    return H


def _inv(jac: np.ndarray) -> np.ndarray:
    """对前两个轴求逆，支持尾随的采样轴。"""
    if jac.ndim == 2:
        return np.linalg.inv(jac)
    return np.moveaxis(np.linalg.inv(np.moveaxis(jac, -1, 0)), 0, -1)


def bl_jacobian(x_bl, a: float, M: float = 1.0) -> np.ndarray:
    """jBLH[m, i] = ∂x_BL^m / ∂x_H^i"""
    return _inv(harmonic_jacobian(x_bl, a, M))


def bl_hessian(x_bl, a: float, M: float = 1.0) -> np.ndarray:
    """
    Hess[m, i, k] = ∂²x_BL^m / ∂x_H^i ∂x_H^k
                  = -J⁻¹[m, n] H[n, p, q] J⁻¹[p, i] J⁻¹[q, k]
    """
    j_inv = bl_jacobian(x_bl, a, M)
    H = harmonic_hessian(x_bl, a, M)
    return -np.einsum('mn...,npq...,pi...,qk...->mik...', j_inv, H, j_inv, j_inv)


def to_harmonic_velocity(x_bl, v_bl, a: float, M: float = 1.0) -> np.ndarray:
    J = harmonic_jacobian(x_bl, a, M)
    return np.einsum('im...,m...->i...', J, np.asarray(v_bl, dtype=float))


def to_harmonic_acceleration(x_bl, v_bl, a_bl, a: float, M: float = 1.0) -> np.ndarray:
    """a_H^i = J[i, m] a_BL^m + H[i, m, n] v_BL^m v_BL^n"""
    v_bl = np.asarray(v_bl, dtype=float)
    J = harmonic_jacobian(x_bl, a, M)
    H = harmonic_hessian(x_bl, a, M)
    return (np.einsum('im...,m...->i...', J, np.asarray(a_bl, dtype=float))
            + np.einsum('imn...,m...,n...->i...', H, v_bl, v_bl))


def from_harmonic_velocity(x_h, v_h, a: float, M: float = 1.0) -> np.ndarray:
    x_bl = from_harmonic_position(x_h, a, M)
    return np.einsum('mi...,i...->m...', bl_jacobian(x_bl, a, M), np.asarray(v_h, dtype=float))


def from_harmonic_acceleration(x_h, v_h, a_h, a: float, M: float = 1.0) -> np.ndarray:
    """
    to_harmonic_acceleration 的精确逆：
        a_BL = J⁻¹ (a_H - H(v_BL, v_BL)),  v_BL = J⁻¹ v_H
    v_h = 0 时就是线性变换 J⁻¹ a_H（自加速度变回 BL 时用这一种）。
    """
    x_bl = from_harmonic_position(x_h, a, M)
    j_inv = bl_jacobian(x_bl, a, M)
    H = harmonic_hessian(x_bl, a, M)
    v_bl = np.einsum('mi...,i...->m...', j_inv, np.asarray(v_h, dtype=float))
    rhs = np.asarray(a_h, dtype=float) - np.einsum('imn...,m...,n...->i...', H, v_bl, v_bl)
    return np.einsum('mi...,i...->m...', j_inv, rhs)


# ---------------------------------------------------------------------
# 谐和坐标下的度规
# ---------------------------------------------------------------------

def _block_time(spatial: np.ndarray) -> np.ndarray:
    lam = np.zeros((4, 4))
    lam[0, 0] = 1.0
    lam[1:, 1:] = spatial
    return lam


def harmonic_metric(metric, x_bl, a: float, M: float = 1.0) -> np.ndarray:
    """g^H_{μν} = Λ^α_μ Λ^β_ν g^BL_{αβ}，Λ = diag(1, ∂x_BL/∂x_H)"""
    lam = _block_time(bl_jacobian(x_bl, a, M))
    return np.einsum('am,bn,ab->mn', lam, lam, metric.metric(x_bl))


def harmonic_inverse_metric(metric, x_bl, a: float, M: float = 1.0) -> np.ndarray:
    """g_H^{μν} = L^μ_α L^ν_β g_BL^{αβ}，L = diag(1, ∂x_H/∂x_BL)"""
    lam = _block_time(harmonic_jacobian(x_bl, a, M))
    return np.einsum('ma,nb,ab->mn', lam, lam, metric.inverse_metric(x_bl))
