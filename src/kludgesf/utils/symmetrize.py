# src/kludgesf/utils/symmetrize.py
"""
多极矩张量的对称化 (MomentSymmetrizer)。

上游只计算指标非递减的独立分量 (i <= j <= k <= l)，这里把它们复制到
其余所有置换位置，使张量完全对称。秩 2 / 3 / 4 的独立分量数分别为 6 / 10 / 15。

张量可以带一个（或多个）尾随的采样轴，例如 (3, 3, N)；只对前 rank 个空间指标做置换。
"""

from __future__ import annotations

import itertools

import numpy as np

PAIR_INDICES = tuple(itertools.combinations_with_replacement(range(3), 2))
TRIPLE_INDICES = tuple(itertools.combinations_with_replacement(range(3), 3))
QUAD_INDICES = tuple(itertools.combinations_with_replacement(range(3), 4))

# 自力计算需要 (Mij, Sij) 与 Mijk 的独立分量；波形计算还需要 Mijkl
SELFFORCE_INDICES = PAIR_INDICES + TRIPLE_INDICES
WAVEFORM_INDICES = PAIR_INDICES + TRIPLE_INDICES + QUAD_INDICES


def symmetrize_tensor(tensor: np.ndarray, rank: int) -> np.ndarray:
    """原地把 tensor[sorted(idx)] 复制到 tensor[idx]，返回同一个数组。"""
    for idx in itertools.product(range(3), repeat=rank):
        source = tuple(sorted(idx))
        if source != idx:
            tensor[idx] = tensor[source]
    return tensor


def symmetrize_two_index_tensor(tensor: np.ndarray) -> np.ndarray:
    return symmetrize_tensor(tensor, 2)


def symmetrize_three_index_tensor(tensor: np.ndarray) -> np.ndarray:
    return symmetrize_tensor(tensor, 3)


def symmetrize_four_index_tensor(tensor: np.ndarray) -> np.ndarray:
    return symmetrize_tensor(tensor, 4)
