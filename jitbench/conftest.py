"""Общие фикстуры: fake CUDA runtime на host памяти и проверка наличия GPU."""

from __future__ import annotations
import ctypes

import numpy as np
import pytest

from jitbench import runtime as jb_runtime


def _cuda_available() -> bool:
    try:
        import cupy
        return cupy.cuda.runtime.getDeviceCount() > 0
    except Exception:
        return False


def _nvrtc_available() -> bool:
    try:
        from cupy_backends.cuda.libs import nvrtc
        nvrtc.getVersion()
        return True
    except Exception:
        return False


requires_gpu = pytest.mark.skipif(not _cuda_available(), reason="CUDA device not available")
requires_nvrtc = pytest.mark.skipif(not _nvrtc_available(), reason="NVRTC not available")


class FakeCudaError(Exception):
    """Повторяет интерфейс CUDADriverError / CUDARuntimeError."""

    def __init__(self, status: int, name: str, message: str):
        self.status = status
        super().__init__(f"{name}: {message}")


class FakeCudaRuntime:
    """
    Device память - это numpy массивы на host, указатели - их реальные
    адреса, поэтому memcpy работает через ctypes.memmove.
    """
    memcpyHostToDevice = 1
    memcpyDeviceToHost = 2

    def __init__(self, fail_malloc_after: int = -1):
        self.memory = {}
        self.mallocs = 0
        self.frees = 0
        self.copies = []
        self._fail_malloc_after = fail_malloc_after

    def malloc(self, nbytes: int) -> int:
        if self._fail_malloc_after >= 0 and self.mallocs >= self._fail_malloc_after:
            raise FakeCudaError(2, 'cudaErrorMemoryAllocation', 'out of memory')
        block = np.zeros(nbytes, dtype=np.uint8)
        ptr = block.ctypes.data
        self.memory[ptr] = block
        self.mallocs += 1
        return ptr

    def free(self, ptr: int):
        if ptr not in self.memory:
            raise FakeCudaError(1, 'cudaErrorInvalidValue', 'invalid argument')
        del self.memory[ptr]
        self.frees += 1

    def memcpy(self, dst: int, src: int, size: int, kind: int):
        self.copies.append(kind)
        ctypes.memmove(dst, src, size)

    def view(self, ptr) -> np.ndarray:
        return self.memory[int(ptr)].view(np.float64)


class FakeKernel:
    """Исполняет A[i] = B[i] op C на памяти FakeCudaRuntime."""

    def __init__(self, rt: FakeCudaRuntime, op):
        self.rt = rt
        self.op = op
        self.launches = []

    def launch(self, grid, block, args, shared_mem=0):
        out, src, scalar, n = args
        a = self.rt.view(out)
        b = self.rt.view(src)
        a[:int(n)] = self.op(b[:int(n)], float(scalar))
        self.launches.append((grid, block, shared_mem))


@pytest.fixture
def fake_rt():
    return FakeCudaRuntime()


@pytest.fixture
def fake_driver_errors(monkeypatch):
    """check_driver распознаёт FakeCudaError как ошибку драйвера."""
    monkeypatch.setattr(jb_runtime, '_DRIVER_ERRORS', (FakeCudaError,))
    return FakeCudaError
