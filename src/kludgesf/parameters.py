# src/kludgesf/parameters.py
"""
EMRI 与自力 / 波形计算的配置参数。

- EMRIParameters: 物理系统参数（MBH/CO 质量、自旋、测地线常数 E, L, C）；
- SelfForceConfig: 自力计算的数值控制参数（步长、求值下标、时间参数化、
  导数方法、线程数等）；
- WaveformConfig: 波形计算的数值控制参数。

与其他模块的关系：
- selfforce.assembler: 接收 (EMRIParameters, SelfForceConfig) 并执行三阶段流水线；
- waveforms.kludge_waveform: 接收 (EMRIParameters, WaveformConfig)；
- orbits.mino_time: Mino 时间分支需要 E, L 与 Carter 常数 C（测地线方程的 Θ(θ), R(r)）。
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence

from .constants import mass_solar_to_seconds

TIME_PARAMETERS = ("BL", "mino")
DERIVATIVE_METHODS = ("finite_difference", "fourier_fit")


@dataclass
class EMRIParameters:
    """
    EMRI 内禀参数。

    单位约定：
    - M, mu: 以太阳质量 M_sun 为单位输入；
    - 内部计算统一取 M=1，小天体质量即质量比 q = mu / M；
    - E, L, C: 几何单位下的比能量、比角动量 (z 分量) 与 Carter 常数 Q，
      只有 Mino 时间分支需要。
    """

    # --- 质量与自旋 ---
    M: float = 1.0e6   # MBH mass in M_sun
    mu: float = 10.0   # CO mass in M_sun
    a: float = 0.7     # dimensionless spin, a = S / M^2

    # --- 测地线常数 ---
    E: Optional[float] = None
    L: Optional[float] = None
    C: Optional[float] = None

    def q(self) -> float:
        """质量比 q = mu / M（即几何单位 M=1 下的小天体质量）。"""
        return self.mu / self.M

    def M_geom(self) -> float:
        """MBH 质量（几何单位，单位：秒），用来把 t/M 换算成秒。"""
        return mass_solar_to_seconds(self.M)


@dataclass
class SelfForceConfig:
    """
    自力计算配置。

    h :
        轨道采样步长（以 M 为单位）。time_parameter='BL' 时是坐标时间步长，
        'mino' 时是 Mino 时间步长。
    compute_at :
        在采样序列中的求值下标，两侧需留出足够的差分模板宽度。
    time_parameter :
        'BL'   : 序列按 BL 坐标时间均匀采样，直接做有限差分；
        'mino' : 序列按 Mino 时间均匀采样，先对 λ 求导再用链式法则换成 d/dt。
    derivative_method :
        'finite_difference' : 有限差分模板（默认）；
        'fourier_fit'       : 以基频组合为频率的 Fourier 级数最小二乘拟合，
                              需要提供 fit_frequencies。
    n_workers :
        阶段 2 (多极矩及其导数) 的线程数，1 表示串行。
    """

    h: float = 1.0
    compute_at: int = 0
    time_parameter: str = "BL"
    derivative_method: str = "finite_difference"

    # 有限差分精度阶（偶数）
    fd_accuracy: int = 6

    # Fourier 拟合
    n_harm: int = 2
    fit_frequencies: Optional[Sequence[float]] = None

    n_workers: int = 1
    validate: bool = True


@dataclass
class WaveformConfig:
    """
    波形计算配置。

    与自力计算共用同一套多极矩，但需要每个采样点上的导数：
    - h: 采样步长（以 M 为单位）；
    - time_parameter: 'BL' 或 'mino'，含义同 SelfForceConfig。
    """

    h: float = 1.0
    time_parameter: str = "BL"
    fd_accuracy: int = 6
    n_workers: int = 1
    validate: bool = True
