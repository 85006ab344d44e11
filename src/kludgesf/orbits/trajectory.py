# src/kludgesf/orbits/trajectory.py
"""
轨道采样数据与坐标变换阶段（自力流水线的阶段 1）。

- BLTrajectory: 轨道积分器给出的 BL 坐标 (r, θ, ϕ) 及其对 t 的一、二阶导数，
  按均匀步长 h 采样（采样参数可以是 t，也可以是 Mino 时间 λ）；
- HarmonicTrajectory: 转换到谐和 Cartesian 坐标后的位置 / 速度 / 加速度及派生标量；
- to_harmonic_trajectory: 对所有采样点向量化的坐标变换；
- circular_equatorial_orbit: 圆赤道测地线，作为参考轨道（测试与端到端入口使用）。

注意：
- 一般轨道的积分不在本包范围内，调用者自己提供 BLTrajectory；
- 背景空间度规是 δ_ij，所以“协变”矢量与逆变矢量数值相同，这里只给别名。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from ..geometry.harmonic_coords import (
    to_harmonic_position,
    to_harmonic_velocity,
    to_harmonic_acceleration,
)
from ..utils.tensor_algebra import norm_3d
from .mino_time import dt_dlambda


@dataclass
class BLTrajectory:
    t: np.ndarray
    r: np.ndarray
    theta: np.ndarray
    phi: np.ndarray
    dr_dt: np.ndarray
    dtheta_dt: np.ndarray
    dphi_dt: np.ndarray
    d2r_dt2: np.ndarray
    d2theta_dt2: np.ndarray
    d2phi_dt2: np.ndarray
    h: float
    sampling: str = "t"              # 't' 或 'mino'
    lam: Optional[np.ndarray] = None  # Mino 时间（sampling='mino' 时）

    @property
    def n_points(self) -> int:
        return len(self.t)

    @property
    def x_bl(self) -> np.ndarray:
        return np.array([self.r, self.theta, self.phi])

    @property
    def v_bl(self) -> np.ndarray:
        return np.array([self.dr_dt, self.dtheta_dt, self.dphi_dt])

    @property
    def a_bl(self) -> np.ndarray:
        return np.array([self.d2r_dt2, self.d2theta_dt2, self.d2phi_dt2])

    def check_lengths(self):
        names = ("t", "r", "theta", "phi", "dr_dt", "dtheta_dt", "dphi_dt",
                 "d2r_dt2", "d2theta_dt2", "d2phi_dt2")
        n = len(self.t)
        for name in names:
            if len(getattr(self, name)) != n:
                raise ValueError(
                    f"trajectory array '{name}' has length {len(getattr(self, name))}, expected {n}")
        if self.lam is not None and len(self.lam) != n:
            raise ValueError(f"trajectory array 'lam' has length {len(self.lam)}, expected {n}")


@dataclass
class HarmonicTrajectory:
    """形状 (3, N) 的 BL / 谐和坐标位置、速度、加速度，及 |x_H|, |v_H|。"""
    x_bl: np.ndarray
    v_bl: np.ndarray
    a_bl: np.ndarray
    x_h: np.ndarray
    v_h: np.ndarray
    a_h: np.ndarray
    r_h: np.ndarray
    speed: np.ndarray

    # 协变形式（空间度规为 δ_ij）
    @property
    def x_h_cov(self) -> np.ndarray:
        return self.x_h

    @property
    def v_h_cov(self) -> np.ndarray:
        return self.v_h

    @property
    def a_h_cov(self) -> np.ndarray:
        return self.a_h

    @property
    def n_points(self) -> int:
        return self.x_h.shape[1]


def to_harmonic_trajectory(traj: BLTrajectory, a: float, M: float = 1.0,
                           validate: bool = True) -> HarmonicTrajectory:
    if validate:
        traj.check_lengths()
    x_bl, v_bl, a_bl = traj.x_bl, traj.v_bl, traj.a_bl

    x_h = to_harmonic_position(x_bl, a, M)
    v_h = to_harmonic_velocity(x_bl, v_bl, a, M)
    a_h = to_harmonic_acceleration(x_bl, v_bl, a_bl, a, M)
    logger.debug("[Coords] converted {} samples to harmonic coordinates (a={})", traj.n_points, a)

    return HarmonicTrajectory(
        x_bl=x_bl, v_bl=v_bl, a_bl=a_bl,
        x_h=x_h, v_h=v_h, a_h=a_h,
        r_h=norm_3d(x_h), speed=norm_3d(v_h),
    )


# ---------------------------------------------------------------------
# 参考轨道：圆赤道测地线
# ---------------------------------------------------------------------

def circular_equatorial_constants(r0: float, a: float, M: float = 1.0):
    """
    顺行圆赤道轨道的比能量 E、比角动量 L 与 Ω_ϕ = dϕ/dt
    (Bardeen, Press & Teukolsky 1972)。
    """
    sqM = np.sqrt(M)
    sqr = np.sqrt(r0)
    denom = r0**0.75 * np.sqrt(r0**1.5 - 3.0 * M * sqr + 2.0 * a * sqM)
    E = (r0**1.5 - 2.0 * M * sqr + a * sqM) / denom
    L = sqM * (r0 * r0 - 2.0 * a * sqM * sqr + a * a) / denom
    omega = sqM / (r0**1.5 + a * sqM)
    return E, L, omega


def circular_equatorial_orbit(r0: float, a: float, M: float = 1.0,
                              n_points: int = 101, h: float = 1.0,
                              sampling: str = "t") -> BLTrajectory:
    """
    r ≡ r0, θ ≡ π/2, ϕ = Ω t。
    sampling='t'    : t_n = n h；
    sampling='mino' : λ_n = n h，t = V_t λ（V_t 在圆轨道上为常数）。
    """
    if sampling not in ("t", "mino"):
        raise ValueError(f"unknown sampling '{sampling}', expected 't' or 'mino'")
    E, L, omega = circular_equatorial_constants(r0, a, M)
    grid = h * np.arange(n_points, dtype=float)

    lam = None
    if sampling == "mino":
        lam = grid
        vt = dt_dlambda(np.array([r0, 0.5 * np.pi, 0.0]), a, M, E, L)
        t = vt * lam
    else:
        t = grid

    zeros = np.zeros(n_points)
    return BLTrajectory(
        t=t,
        r=np.full(n_points, float(r0)),
        theta=np.full(n_points, 0.5 * np.pi),
        phi=omega * t,
        dr_dt=zeros.copy(),
        dtheta_dt=zeros.copy(),
        dphi_dt=np.full(n_points, omega),
        d2r_dt2=zeros.copy(),
        d2theta_dt2=zeros.copy(),
        d2phi_dt2=zeros.copy(),
        h=h,
        sampling=sampling,
        lam=lam,
    )
