# src/kludgesf/core/selfforce_cpu.py
"""
kludge 自力与波形：CPU 端到端接口。

流程：
------
1. 轨道：调用者给出 BLTrajectory；或者只给半径 r0，
   用 orbits.trajectory.circular_equatorial_orbit 生成圆赤道参考轨道；
2. 自力：selfforce.assembler.SelfForceAssembler 三阶段流水线；
3. 波形：waveforms.kludge_waveform.compute_kludge_waveform。

注意：
------
- 一般轨道（偏心、倾斜）的积分不在本包内，需要外部积分器提供采样；
- 只给 r0 时，缺省的 E, L, C 取圆赤道轨道的值，写在 params 的副本上，
  调用者传入的 params 不被修改。
"""

from dataclasses import replace
from typing import Optional, Tuple

import numpy as np

from ..geometry.kerr_metric import MetricProvider
from ..orbits.trajectory import (
    BLTrajectory,
    circular_equatorial_constants,
    circular_equatorial_orbit,
)
from ..parameters import EMRIParameters, SelfForceConfig, WaveformConfig
from ..selfforce.assembler import SelfForceAssembler, SelfForceResult
from ..waveforms.kludge_waveform import compute_kludge_waveform
from ..waveforms.multipole_radiation import ObserverInfo


def _reference_orbit(params: EMRIParameters, time_parameter: str, h: float,
                     r0: Optional[float], n_points: int) -> Tuple[EMRIParameters, BLTrajectory]:
    if r0 is None:
        raise ValueError("either a trajectory or the orbital radius r0 must be given")
    sampling = "mino" if time_parameter == "mino" else "t"
    E, L, _ = circular_equatorial_constants(r0, params.a)
    params = replace(
        params,
        E=E if params.E is None else params.E,
        L=L if params.L is None else params.L,
        C=0.0 if params.C is None else params.C,
    )
    return params, circular_equatorial_orbit(r0, params.a, 1.0, n_points, h, sampling)


def compute_self_force_cpu(
    params: EMRIParameters,
    config: SelfForceConfig,
    trajectory: Optional[BLTrajectory] = None,
    r0: Optional[float] = None,
    n_points: int = 101,
    metric: Optional[MetricProvider] = None,
) -> SelfForceResult:
    """
    端到端计算一次自加速度。

    返回
    ----
    SelfForceResult : a_sf_h, a_sf_bl（4 矢量）以及用到的矩导数。
    """
    if trajectory is None:
        params, trajectory = _reference_orbit(params, config.time_parameter, config.h, r0, n_points)
    assembler = SelfForceAssembler(params, config, metric)
    return assembler.compute(trajectory)


def generate_kludge_waveform_cpu(
    params: EMRIParameters,
    config: WaveformConfig,
    trajectory: Optional[BLTrajectory] = None,
    r0: Optional[float] = None,
    n_points: int = 1001,
    D_L: float = 1.0,
    theta_obs: float = 0.25 * np.pi,
    phi_obs: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    端到端生成 kludge 波形。

    D_L 以 Gpc 为单位，(theta_obs, phi_obs) 为观测方向（源坐标系）。

    返回
    ----
    t, h_plus, h_cross : ndarray
    """
    if trajectory is None:
        params, trajectory = _reference_orbit(params, config.time_parameter, config.h, r0, n_points)
    observer = ObserverInfo.from_gpc(D_L, params.M, theta_obs, phi_obs)
    wf = compute_kludge_waveform(trajectory, params, observer, config)
    return wf.t, wf.h_plus, wf.h_cross
