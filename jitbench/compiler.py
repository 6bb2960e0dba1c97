"""
jitbench - JIT Compiler

Компилирует исходный код kernel в PTX через NVRTC (биндинги CuPy).
Компиляция без дополнительных опций: базовая архитектура, без тюнинга под
конкретный GPU.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

try:
    from cupy_backends.cuda.libs import nvrtc
    HAS_NVRTC = True
except ImportError:
    HAS_NVRTC = False
    nvrtc = None

from .errors import CompileError
from .kernels import KernelVariant


@dataclass(frozen=True)
class CompiledArtifact:
    """Результат компиляции: PTX образ и лог компилятора."""
    ptx: bytes
    log: str = ''

    @property
    def size(self) -> int:
        return len(self.ptx)


def _require_nvrtc():
    if not HAS_NVRTC:
        raise ImportError("CuPy is required. Install with: pip install cupy-cuda12x")


def _program_log(prog: int) -> str:
    """Лог программы NVRTC. Пустой лог - нормальная ситуация."""
    try:
        log = nvrtc.getProgramLog(prog)
    except nvrtc.NVRTCError:
        return ''
    if isinstance(log, bytes):
        log = log.decode('utf-8', errors='replace')
    return log.rstrip('\x00').strip()


def compile_source(
    source: str,
    name: str = 'prog.cu',
    options: Sequence[str] = (),
) -> CompiledArtifact:
    """
    Компилирует CUDA C++ в PTX.

    Args:
        source: исходный код kernel
        name: имя программы (для сообщений компилятора)
        options: опции nvrtc, по умолчанию пусто

    Raises:
        CompileError: с полным логом компилятора
    """
    _require_nvrtc()

    try:
        prog = nvrtc.createProgram(source, name, (), ())
    except nvrtc.NVRTCError as e:
        raise CompileError(f"Failed to create NVRTC program: {e}")

    try:
        try:
            nvrtc.compileProgram(prog, list(options))
        except nvrtc.NVRTCError as e:
            raise CompileError(f"CUDA compilation failed: {e}", log=_program_log(prog))

        # getPTX: сначала размер образа, затем сами байты
        try:
            ptx = nvrtc.getPTX(prog)
        except nvrtc.NVRTCError as e:
            raise CompileError(f"Failed to extract PTX: {e}", log=_program_log(prog))
        if isinstance(ptx, str):
            ptx = ptx.encode('utf-8')
        return CompiledArtifact(ptx=ptx, log=_program_log(prog))
    finally:
        nvrtc.destroyProgram(prog)


def compile_variant(variant: KernelVariant) -> CompiledArtifact:
    """Компилирует выбранный вариант kernel."""
    return compile_source(variant.source)
