# src/kludgesf/utils/parallel.py
"""
fork-join 辅助函数。

阶段 2 (多极矩与高阶导数) 的每个独立指标组合之间没有数据依赖，
每个任务只写自己拥有的输出槽位，所以可以直接丢给线程池；
退出 with 块即为阶段之间的屏障。
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List


def parallel_map(func: Callable, items: Iterable, n_workers: int = 1) -> List:
    """按输入顺序返回 [func(item) for item in items]；n_workers <= 1 时串行执行。"""
    items = list(items)
    if n_workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        return list(pool.map(func, items))
