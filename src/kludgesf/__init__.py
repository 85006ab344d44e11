"""
kludgesf: EMRI kludge 自力 (self-force) 与多极波形。
"""

from .parameters import EMRIParameters, SelfForceConfig, WaveformConfig
from .core.selfforce_cpu import compute_self_force_cpu, generate_kludge_waveform_cpu

__all__ = [
    "EMRIParameters",
    "SelfForceConfig",
    "WaveformConfig",
    "compute_self_force_cpu",
    "generate_kludge_waveform_cpu",
]

__version__ = "0.1.0"
