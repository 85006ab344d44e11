# src/kludgesf/constants.py
"""
单位换算。

kludgesf 内部统一使用 G = c = 1 且 MBH 质量 M = 1 的几何单位，
这里只保留把输入的物理量换算进来所需的常数：

- parameters.EMRIParameters.M_geom: M [M_sun] -> 秒；
- waveforms.multipole_radiation.ObserverInfo.from_gpc: D_L [Gpc] -> 以 M 为单位。
"""

G_SI = 6.67430e-11             # m^3 / (kg s^2)
C_SI = 2.99792458e8            # m / s
M_SUN_SI = 1.98847e30          # kg
GPC_IN_METERS = 3.0856775814913673e25

# GM_sun/c^3 [s] 与 GM_sun/c^2 [m]
M_SUN_IN_SECONDS = G_SI * M_SUN_SI / C_SI**3
M_SUN_IN_METERS = G_SI * M_SUN_SI / C_SI**2


def mass_solar_to_seconds(m_solar: float) -> float:
    return m_solar * M_SUN_IN_SECONDS


def distance_in_mbh_units(d_gpc: float, M_solar: float) -> float:
    """
    D_L [Gpc] -> D_L / (G M / c^2)。

    h_ij 的公式 (Eq. 84) 里 1/r 的 r 就是这个量。
    """
    return d_gpc * GPC_IN_METERS / (M_solar * M_SUN_IN_METERS)
