# src/kludgesf/waveforms/kludge_waveform.py
"""
kludge 波形流水线：轨道 -> 谐和坐标 -> 多极矩 -> 每个采样点的导数 -> h_ij -> (h₊, h×)。

与自力计算共用 multipole.moments / multipole.derivatives，区别是：
- 需要 Mijkl2 与 Sijk1（十六极矩、流八极矩）；
- 导数在每个采样点上求（有限差分，两端用单边模板），只需要一阶和二阶；
- time_parameter='mino' 时逐点乘上 dλ/dt, d²λ/dt²。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from ..multipole.derivatives import WaveformDerivatives, waveform_moment_derivatives
from ..multipole.moments import waveform_moments
from ..orbits.mino_time import lambda_time_derivatives
from ..orbits.trajectory import BLTrajectory, to_harmonic_trajectory
from ..parameters import TIME_PARAMETERS, EMRIParameters, WaveformConfig
from ..utils.math_utils import stencil_size
from .multipole_radiation import ObserverInfo, project_to_tt, strain_tensor


@dataclass
class KludgeWaveform:
    t: np.ndarray
    h_plus: np.ndarray
    h_cross: np.ndarray
    h_ij: np.ndarray


def _validate(traj: BLTrajectory, params: EMRIParameters, config: WaveformConfig):
    if config.time_parameter not in TIME_PARAMETERS:
        raise ValueError(f"unknown time_parameter '{config.time_parameter}', expected one of {TIME_PARAMETERS}")
    traj.check_lengths()
    expected = "t" if config.time_parameter == "BL" else "mino"
    if traj.sampling != expected:
        raise ValueError(
            f"trajectory is sampled in '{traj.sampling}' but time_parameter is '{config.time_parameter}'")
    size = stencil_size(2, config.fd_accuracy)
    if traj.n_points < size:
        raise ValueError(f"{traj.n_points} points are too few for the {size}-point second-derivative stencil")
    if config.time_parameter == "mino" and (params.E is None or params.L is None):
        raise ValueError("time_parameter='mino' requires the orbital constants E and L")


def compute_waveform_derivatives(traj: BLTrajectory, params: EMRIParameters,
                                 config: Optional[WaveformConfig] = None) -> WaveformDerivatives:
    config = config if config is not None else WaveformConfig()
    if config.validate:
        _validate(traj, params, config)
    M = 1.0
    htraj = to_harmonic_trajectory(traj, params.a, M, validate=False)
    moments = waveform_moments(htraj.x_h, htraj.v_h, htraj.a_h, params.q(), config.n_workers)

    lambda_derivs = None
    if config.time_parameter == "mino":
        lambda_derivs = lambda_time_derivatives([htraj.x_bl, htraj.v_bl], params.a, M, params.E, params.L)
    return waveform_moment_derivatives(moments, config.h, lambda_derivs,
                                       config.fd_accuracy, config.n_workers)


def compute_kludge_waveform(traj: BLTrajectory, params: EMRIParameters, observer: ObserverInfo,
                            config: Optional[WaveformConfig] = None) -> KludgeWaveform:
    """observer.R 以 M 为单位（见 ObserverInfo.from_gpc）。"""
    derivs = compute_waveform_derivatives(traj, params, config)
    h_ij = strain_tensor(observer, derivs.Mij2, derivs.Mijk3, derivs.Mijkl4, derivs.Sij2, derivs.Sijk3)
    h_plus, h_cross = project_to_tt(h_ij, observer)
    logger.info("[Waveform] {} samples, max|h+|={:.3e}, max|hx|={:.3e}",
                traj.n_points, float(np.max(np.abs(h_plus))), float(np.max(np.abs(h_cross))))
    return KludgeWaveform(t=np.asarray(traj.t), h_plus=h_plus, h_cross=h_cross, h_ij=h_ij)
