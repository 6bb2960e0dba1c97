"""
jitbench - Pipeline

Полный прогон: выбор варианта -> NVRTC -> загрузка модуля -> копирование
входов -> цикл запусков -> копирование результата -> проверка.

Ошибки не обрабатываются здесь: буферы освобождаются, модуль выгружается,
исключение уходит вызывающему (cli.main решает, с каким кодом выйти).
"""

from __future__ import annotations
import sys
from dataclasses import dataclass
from typing import Optional, TextIO, Tuple

import numpy as np

from .benchmark import (
    INT32_MAX,
    TIMING_WINDOWS,
    TRIALS,
    BenchmarkTiming,
    benchmark,
    kernel_args,
    launch_config,
    make_scalar,
)
from .buffers import BufferManager
from .compiler import compile_variant
from .kernels import KernelVariant, resolve
from .runtime import DEVICE_ID, initialize, load_module, resolve_entry_point
from .verify import verify


@dataclass(frozen=True)
class RunConfig:
    """Параметры одного прогона."""
    variant_id: int
    element_count: int
    trial_count: int = TRIALS
    seed: int = 0
    timing: str = 'enqueue'
    debug: bool = False

    def __post_init__(self):
        if isinstance(self.element_count, bool) or not isinstance(self.element_count, int):
            raise ValueError(f"element count must be an integer, got {self.element_count!r}")
        if self.element_count <= 0:
            raise ValueError(f"element count must be positive, got {self.element_count}")
        if self.element_count > INT32_MAX:
            raise ValueError(f"element count must not exceed {INT32_MAX}, got {self.element_count}")
        if self.trial_count <= 0:
            raise ValueError(f"trial count must be positive, got {self.trial_count}")
        if self.timing not in TIMING_WINDOWS:
            raise ValueError(f"timing must be one of {TIMING_WINDOWS}, got {self.timing!r}")


@dataclass(frozen=True)
class RunResult:
    """Итог успешного прогона."""
    variant: KernelVariant
    grid: Tuple[int]
    block: Tuple[int]
    scalar: float
    timing: BenchmarkTiming
    allocations: int
    releases: int

    @property
    def seconds_per_launch(self) -> float:
        return self.timing.seconds_per_launch


def run(config: RunConfig, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> RunResult:
    """
    Выполняет прогон и печатает три строки в out:

        div selected.
        CUDA kernel launch with 19532 blocks of 256 threads
        Time = 0.000004210
    """
    out = out if out is not None else sys.stdout
    err = err if err is not None else sys.stderr

    # до компиляции: неизвестный id не доходит до NVRTC
    variant = resolve(config.variant_id)
    print(f"{variant.name} selected.", file=out)

    artifact = compile_variant(variant)
    if config.debug:
        print(f"[jitbench] PTX: {artifact.size} bytes", file=err)
        if artifact.log:
            print(f"[jitbench] compiler log:\n{artifact.log}", file=err)

    ctx = initialize(DEVICE_ID)
    if config.debug:
        print(f"[jitbench] device {ctx.device_id}: {ctx.name} "
              f"(compute capability {ctx.compute_capability})", file=err)

    module = load_module(artifact)
    try:
        kernel = resolve_entry_point(module, variant.entry_point)
        size = config.element_count
        rng = np.random.default_rng(config.seed)

        with BufferManager() as buffers:
            h_a = buffers.allocate_host(size)
            h_b = buffers.allocate_host(size)
            h_c = buffers.allocate_host(size)
            buffers.populate(h_a, rng)
            buffers.populate(h_b, rng)
            nbytes = h_a.nbytes

            d_a = buffers.allocate_device(nbytes)
            buffers.upload(d_a, h_a, nbytes)
            d_b = buffers.allocate_device(nbytes)
            buffers.upload(d_b, h_b, nbytes)

            grid, block = launch_config(size)
            print(f"CUDA kernel launch with {grid[0]} blocks of {block[0]} threads", file=out)

            scalar = make_scalar(rng)
            args = kernel_args(d_a.ptr, d_b.ptr, scalar, size)
            timing = benchmark(
                kernel, args, size,
                trial_count=config.trial_count,
                synchronize=ctx.synchronize,
                timing=config.timing,
            )

            buffers.download(h_c, buffers.output_alias(d_a, d_b), nbytes)
            verify(h_c.array, h_b.array, scalar, variant)

            print(f"Time = {timing.seconds_per_launch:.9f}", file=out)

            for buffer in (d_a, d_b, h_a, h_b, h_c):
                buffers.release(buffer)

        if config.debug:
            print(f"[jitbench] buffers: {buffers.allocations} allocated, "
                  f"{buffers.releases} released", file=err)
    finally:
        module.unload()

    ctx.close()
    return RunResult(
        variant=variant,
        grid=grid,
        block=block,
        scalar=scalar,
        timing=timing,
        allocations=buffers.allocations,
        releases=buffers.releases,
    )
