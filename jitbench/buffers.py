"""
jitbench - Buffers

Host и device буферы с явным владением и явным освобождением.

Контракт алиасинга: kernel пишет результат поверх первого входного
device буфера (A[i] = B[i] op C). Результат копируется обратно именно из
него, см. BufferManager.output_alias.
"""

from __future__ import annotations
import sys
from typing import Any, List, Optional, Union

import numpy as np

try:
    from cupy.cuda import runtime as _cuda_runtime
except ImportError:
    _cuda_runtime = None

from .errors import DriverError, OutOfMemory
from .runtime import check_driver


DTYPE = np.float64


class HostBuffer:
    """Host массив float64."""

    def __init__(self, array: np.ndarray):
        self.array: Optional[np.ndarray] = array
        self.size = array.size
        self.nbytes = array.nbytes

    @property
    def released(self) -> bool:
        return self.array is None

    @property
    def ptr(self) -> int:
        return self.array.ctypes.data

    def __repr__(self) -> str:
        state = 'released' if self.released else f'{self.nbytes} bytes'
        return f"HostBuffer({state})"


class DeviceBuffer:
    """Регион device памяти фиксированной длины."""

    def __init__(self, ptr: int, nbytes: int):
        self.ptr = ptr
        self.nbytes = nbytes
        self.released = False

    def __repr__(self) -> str:
        state = 'released' if self.released else f'{self.nbytes} bytes'
        return f"DeviceBuffer(0x{self.ptr:x}, {state})"


Buffer = Union[HostBuffer, DeviceBuffer]


class BufferManager:
    """
    Выделяет, копирует и освобождает буферы.

    Каждый выделенный буфер освобождается ровно один раз: release() на уже
    освобождённом буфере ничего не делает. При выходе из контекста все
    оставшиеся буферы освобождаются.

    Args:
        rt: CUDA runtime (по умолчанию cupy.cuda.runtime)
    """

    def __init__(self, rt: Any = None):
        if rt is None:
            if _cuda_runtime is None:
                raise ImportError("CuPy is required. Install with: pip install cupy-cuda12x")
            rt = _cuda_runtime
        self._rt = rt
        self._live: List[Buffer] = []
        self.allocations = 0
        self.releases = 0

    @property
    def outstanding(self) -> int:
        return self.allocations - self.releases

    # ------------------------------------------------------------------
    # Host
    # ------------------------------------------------------------------

    def allocate_host(self, count: int) -> HostBuffer:
        """Выделяет host буфер на count элементов."""
        if count <= 0:
            raise ValueError(f"element count must be positive, got {count}")
        try:
            array = np.empty(count, dtype=DTYPE)
        except MemoryError:
            raise OutOfMemory(count * np.dtype(DTYPE).itemsize) from None
        return self._track(HostBuffer(array))

    @staticmethod
    def populate(buffer: HostBuffer, rng: np.random.Generator):
        """Заполняет буфер равномерными значениями из [0, 1)."""
        buffer.array[:] = rng.random(buffer.size, dtype=DTYPE)

    # ------------------------------------------------------------------
    # Device
    # ------------------------------------------------------------------

    def allocate_device(self, nbytes: int) -> DeviceBuffer:
        """cudaMalloc на nbytes байт."""
        if nbytes <= 0:
            raise ValueError(f"byte length must be positive, got {nbytes}")
        ptr = check_driver(self._rt.malloc, nbytes)
        return self._track(DeviceBuffer(ptr, nbytes))

    def upload(self, device: DeviceBuffer, host: HostBuffer, nbytes: Optional[int] = None):
        """Синхронное копирование host -> device."""
        nbytes = self._transfer_size(device, host, nbytes)
        check_driver(self._rt.memcpy, device.ptr, host.ptr, nbytes, self._rt.memcpyHostToDevice)

    def download(self, host: HostBuffer, device: DeviceBuffer, nbytes: Optional[int] = None):
        """Синхронное копирование device -> host."""
        nbytes = self._transfer_size(device, host, nbytes)
        check_driver(self._rt.memcpy, host.ptr, device.ptr, nbytes, self._rt.memcpyDeviceToHost)

    @staticmethod
    def output_alias(output: DeviceBuffer, source: DeviceBuffer) -> DeviceBuffer:
        """
        Буфер, в котором окажется результат kernel.

        Kernel получает (output, source, C, n) и перезаписывает output,
        поэтому результат читается из первого входного буфера, а не из
        отдельного выходного.
        """
        if output is source:
            raise ValueError("output and source must be distinct device buffers")
        return output

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self, buffer: Buffer):
        """Освобождает буфер. Повторный вызов ничего не делает."""
        if buffer.released:
            return
        if isinstance(buffer, DeviceBuffer):
            check_driver(self._rt.free, buffer.ptr)
            buffer.released = True
        else:
            buffer.array = None
        self._live.remove(buffer)
        self.releases += 1

    def release_all(self, raise_errors: bool = True):
        """Освобождает все оставшиеся буферы, в обратном порядке выделения."""
        first_error: Optional[DriverError] = None
        for buffer in reversed(list(self._live)):
            try:
                self.release(buffer)
            except DriverError as e:
                # остальные буферы всё равно освобождаем
                if first_error is None:
                    first_error = e
                if not raise_errors:
                    print(f"Warning: failed to release {buffer!r}: {e}", file=sys.stderr)
        if first_error is not None and raise_errors:
            raise first_error

    def _track(self, buffer):
        self._live.append(buffer)
        self.allocations += 1
        return buffer

    @staticmethod
    def _transfer_size(device: DeviceBuffer, host: HostBuffer, nbytes: Optional[int]) -> int:
        if device.released or host.released:
            raise ValueError("transfer on a released buffer")
        if nbytes is None:
            nbytes = host.nbytes
        if nbytes > device.nbytes or nbytes > host.nbytes:
            raise ValueError(
                f"transfer of {nbytes} bytes exceeds buffer size "
                f"(device {device.nbytes}, host {host.nbytes})"
            )
        return nbytes

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        # при ошибке освобождение best-effort, исходное исключение не теряется
        self.release_all(raise_errors=exc_type is None)

    def __repr__(self) -> str:
        return (f"BufferManager(allocations={self.allocations}, "
                f"releases={self.releases})")
