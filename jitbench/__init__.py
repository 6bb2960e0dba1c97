"""
jitbench - JIT compile and launch benchmark

Compiles a CUDA kernel variant at runtime with NVRTC, loads it into the
current context and measures the steady-state time of launching it.

Quick Start:

    from jitbench import RunConfig, run

    result = run(RunConfig(variant_id=0, element_count=5_000_000))
    print(result.grid, result.seconds_per_launch)

Command line:

    jitbench 0 5000000
    div selected.
    CUDA kernel launch with 19532 blocks of 256 threads
    Time = 0.000004210

Kernel variants:
    0: div    A[i] = B[i] / C
    1: mul    A[i] = B[i] * C

Requirements:
    - NVIDIA GPU with CUDA support
    - CuPy (pip install cupy-cuda12x)
    - NumPy
"""

from .errors import (
    BenchError,
    UnknownVariant,
    CompileError,
    DriverError,
    ModuleLoadError,
    SymbolNotFound,
    OutOfMemory,
    VerificationMismatch,
)

from .kernels import (
    KernelVariant,
    ENTRY_POINT,
    DIV,
    MUL,
    resolve,
    variants,
)

from .compiler import (
    CompiledArtifact,
    compile_source,
    compile_variant,
)

from .runtime import (
    DeviceContext,
    LoadedModule,
    KernelHandle,
    check_driver,
    initialize,
    load_module,
    resolve_entry_point,
)

from .buffers import (
    BufferManager,
    HostBuffer,
    DeviceBuffer,
)

from .benchmark import (
    TRIALS,
    THREADS_PER_BLOCK,
    BenchmarkTiming,
    benchmark,
    launch_config,
)

from .verify import (
    TOLERANCE,
    verify,
)

from .pipeline import (
    RunConfig,
    RunResult,
    run,
)

__version__ = '0.1.0'

__all__ = [
    # Errors
    'BenchError',
    'UnknownVariant',
    'CompileError',
    'DriverError',
    'ModuleLoadError',
    'SymbolNotFound',
    'OutOfMemory',
    'VerificationMismatch',

    # Kernels
    'KernelVariant',
    'ENTRY_POINT',
    'DIV',
    'MUL',
    'resolve',
    'variants',

    # Compiler
    'CompiledArtifact',
    'compile_source',
    'compile_variant',

    # Runtime
    'DeviceContext',
    'LoadedModule',
    'KernelHandle',
    'check_driver',
    'initialize',
    'load_module',
    'resolve_entry_point',

    # Buffers
    'BufferManager',
    'HostBuffer',
    'DeviceBuffer',

    # Benchmark
    'TRIALS',
    'THREADS_PER_BLOCK',
    'BenchmarkTiming',
    'benchmark',
    'launch_config',
    'verify',
    'TOLERANCE',

    # Pipeline
    'RunConfig',
    'RunResult',
    'run',
]
