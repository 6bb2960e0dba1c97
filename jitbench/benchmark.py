"""
jitbench - Launch Benchmark

Запускает kernel TRIALS раз подряд и измеряет среднее время на запуск.

Интервалы:
    enqueue    - до синхронизации (время постановки запусков в очередь)
    completion - включая синхронизацию (время до завершения всех kernel)
"""

from __future__ import annotations
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple

import numpy as np


TRIALS = 10_000
THREADS_PER_BLOCK = 256
RAND_MAX = 2**31 - 1
INT32_MAX = 2**31 - 1

TIMING_WINDOWS = ('enqueue', 'completion')


def launch_config(size: int, threads_per_block: int = THREADS_PER_BLOCK) -> Tuple[Tuple[int], Tuple[int]]:
    """Одномерные grid и block: ceil(size / threads_per_block) блоков."""
    if size <= 0:
        raise ValueError(f"element count must be positive, got {size}")
    num_blocks = (size + threads_per_block - 1) // threads_per_block
    return (num_blocks,), (threads_per_block,)


def make_scalar(rng: np.random.Generator) -> float:
    """Скаляр C: целое значение в [1, RAND_MAX], один на весь запуск."""
    return float(rng.integers(1, RAND_MAX, endpoint=True))


def kernel_args(output_ptr: int, source_ptr: int, scalar: float, size: int) -> Tuple[Any, ...]:
    """Аргументы (double *A, double *B, double C, int numElements)."""
    if size > INT32_MAX:
        raise ValueError(f"element count {size} does not fit the kernel's int parameter")
    return (
        np.uint64(output_ptr),
        np.uint64(source_ptr),
        np.float64(scalar),
        np.int32(size),
    )


@dataclass(frozen=True)
class BenchmarkTiming:
    """Результат цикла запусков."""
    grid: Tuple[int]
    block: Tuple[int]
    trial_count: int
    enqueue_seconds: float
    completion_seconds: float
    timing: str = 'enqueue'

    @property
    def seconds_per_launch(self) -> float:
        total = self.enqueue_seconds if self.timing == 'enqueue' else self.completion_seconds
        return total / self.trial_count


def benchmark(
    kernel: Any,
    args: Tuple[Any, ...],
    size: int,
    trial_count: int = TRIALS,
    synchronize: Callable[[], None] = None,
    timing: str = 'enqueue',
) -> BenchmarkTiming:
    """
    Запускает kernel trial_count раз на потоке по умолчанию.

    Args:
        kernel: объект с методом launch(grid, block, args, shared_mem)
        args: (output, source, C, n)
        size: количество элементов
        trial_count: число запусков
        synchronize: блокирующая синхронизация устройства
        timing: какой интервал отдаёт seconds_per_launch
    """
    if timing not in TIMING_WINDOWS:
        raise ValueError(f"timing must be one of {TIMING_WINDOWS}, got {timing!r}")
    if trial_count <= 0:
        raise ValueError(f"trial count must be positive, got {trial_count}")
    if synchronize is None:
        raise ValueError("synchronize callback is required")

    grid, block = launch_config(size)

    start = time.perf_counter()
    for _ in range(trial_count):
        kernel.launch(grid, block, args, shared_mem=0)
    enqueued = time.perf_counter()
    synchronize()
    completed = time.perf_counter()

    return BenchmarkTiming(
        grid=grid,
        block=block,
        trial_count=trial_count,
        enqueue_seconds=enqueued - start,
        completion_seconds=completed - start,
        timing=timing,
    )
