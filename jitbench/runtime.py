"""
jitbench - Runtime

Инициализация устройства, загрузка PTX модуля и запуск kernel через CuPy.
Каждый вызов драйвера проходит через check_driver: любой ненулевой статус
превращается в DriverError с кодом, сообщением и местом вызова.
"""

from __future__ import annotations
import inspect
import os
from typing import Any, Callable, List, Optional, Tuple

try:
    import cupy as cp
    from cupy.cuda import driver, function, runtime
    HAS_CUPY = True
    _DRIVER_ERRORS: Tuple[type, ...] = (driver.CUDADriverError, runtime.CUDARuntimeError)
except ImportError:
    HAS_CUPY = False
    cp = driver = function = runtime = None
    _DRIVER_ERRORS = ()

from .compiler import CompiledArtifact
from .errors import DriverError, ModuleLoadError, SymbolNotFound


DEVICE_ID = 0

CUDA_ERROR_INVALID_HANDLE = 400
CUDA_ERROR_NOT_FOUND = 500
CUDA_ERROR_NO_DEVICE = 100


def _require_cupy():
    if not HAS_CUPY:
        raise ImportError("CuPy is required. Install with: pip install cupy-cuda12x")


def _call_site(frame) -> str:
    info = inspect.getframeinfo(frame, context=0)
    return f"file <{os.path.basename(info.filename)}>, line {info.lineno} ({info.function})"


def check_driver(func: Callable, *args, error: Callable[..., DriverError] = DriverError, **kwargs):
    """
    Вызывает func и проверяет статус.

    Ошибки CuPy (CUDADriverError / CUDARuntimeError) превращаются в
    error(status, message, call_site), где call_site - место вызова
    check_driver.
    """
    try:
        return func(*args, **kwargs)
    except _DRIVER_ERRORS as e:
        site = _call_site(inspect.currentframe().f_back)
        raise error(int(e.status), str(e), site) from e


# ============================================================================
# Device context
# ============================================================================

class DeviceContext:
    """Контекст исполнения на одном устройстве."""

    def __init__(self, device_id: int = DEVICE_ID):
        _require_cupy()

        count = check_driver(runtime.getDeviceCount)
        if count <= device_id:
            raise DriverError(
                CUDA_ERROR_NO_DEVICE,
                f"no CUDA-capable device {device_id} (found {count})",
                _call_site(inspect.currentframe()),
            )

        self.device_id = device_id
        self.device = cp.cuda.Device(device_id)
        check_driver(self.device.use)
        # cudaFree(0) создаёт primary context
        check_driver(runtime.free, 0)

        props = check_driver(runtime.getDeviceProperties, device_id)
        name = props['name']
        self.name = name.decode() if isinstance(name, bytes) else str(name)
        self.compute_capability = f"{props['major']}.{props['minor']}"
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def synchronize(self):
        """Блокирующее ожидание всех запущенных kernel."""
        check_driver(self.device.synchronize)

    def close(self):
        """Синхронизирует устройство. Primary context живёт до конца процесса."""
        if not self._closed:
            self.synchronize()
            self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self) -> str:
        return f"DeviceContext({self.device_id}, {self.name!r}, sm_{self.compute_capability})"


def initialize(device_id: int = DEVICE_ID) -> DeviceContext:
    """Инициализирует драйвер и контекст на устройстве device_id."""
    return DeviceContext(device_id)


# ============================================================================
# Modules and kernels
# ============================================================================

class KernelHandle:
    """Загруженная точка входа. Валидна, пока модуль не выгружен."""

    def __init__(self, module: 'LoadedModule', name: str, func: Any):
        self.module = module
        self.name = name
        self._func = func

    @property
    def valid(self) -> bool:
        return self._func is not None

    def launch(
        self,
        grid: Tuple[int, ...],
        block: Tuple[int, ...],
        args: Tuple[Any, ...],
        shared_mem: int = 0,
    ):
        """Асинхронный запуск на потоке по умолчанию."""
        if self._func is None:
            raise DriverError(
                CUDA_ERROR_INVALID_HANDLE,
                f"kernel '{self.name}' used after its module was unloaded",
                _call_site(inspect.currentframe().f_back),
            )
        check_driver(self._func, grid, block, args, shared_mem=shared_mem)

    def _invalidate(self):
        self._func = None

    def __repr__(self) -> str:
        state = 'loaded' if self.valid else 'unloaded'
        return f"KernelHandle({self.name!r}, {state})"


class LoadedModule:
    """PTX модуль, загруженный в текущий контекст."""

    def __init__(self, artifact: CompiledArtifact):
        _require_cupy()

        module = function.Module()
        check_driver(module.load, artifact.ptx, error=ModuleLoadError)
        self._module: Optional[Any] = module
        self._handles: List[KernelHandle] = []

    @property
    def loaded(self) -> bool:
        return self._module is not None

    def get_function(self, name: str) -> KernelHandle:
        """Ищет точку входа по имени."""
        if self._module is None:
            raise DriverError(
                CUDA_ERROR_INVALID_HANDLE,
                "module is unloaded",
                _call_site(inspect.currentframe().f_back),
            )
        try:
            func = check_driver(self._module.get_function, name)
        except DriverError as e:
            if e.status != CUDA_ERROR_NOT_FOUND:
                raise
            raise SymbolNotFound(name, e.status, e.message, e.call_site) from e

        handle = KernelHandle(self, name, func)
        self._handles.append(handle)
        return handle

    def unload(self):
        """Выгружает модуль. Все полученные из него kernel становятся невалидными."""
        if self._module is None:
            return
        for handle in self._handles:
            handle._invalidate()
        self._handles.clear()
        # Module.__dealloc__ вызывает cuModuleUnload
        self._module = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.unload()


def load_module(artifact: CompiledArtifact) -> LoadedModule:
    """Загружает скомпилированный образ. Бросает ModuleLoadError."""
    return LoadedModule(artifact)


def resolve_entry_point(module: LoadedModule, name: str) -> KernelHandle:
    """Возвращает kernel по имени. Бросает SymbolNotFound."""
    return module.get_function(name)
