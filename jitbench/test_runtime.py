import types

import pytest

from jitbench import runtime
from jitbench.compiler import CompiledArtifact, compile_source, compile_variant
from jitbench.errors import DriverError, ModuleLoadError, SymbolNotFound
from jitbench.kernels import DIV, ENTRY_POINT
from jitbench.runtime import (
    KernelHandle,
    check_driver,
    initialize,
    load_module,
    resolve_entry_point,
)

from jitbench.conftest import FakeCudaError, requires_gpu, requires_nvrtc


# ============================================================================
# check_driver
# ============================================================================

def test_check_driver_returns_value(fake_driver_errors):
    assert check_driver(lambda a, b=0: a + b, 2, b=3) == 5


def test_check_driver_converts_status(fake_driver_errors):
    def failing():
        raise FakeCudaError(218, 'CUDA_ERROR_INVALID_PTX', 'a PTX JIT compilation failed')

    with pytest.raises(DriverError) as info:
        check_driver(failing)

    err = info.value
    assert err.status == 218
    assert 'CUDA_ERROR_INVALID_PTX' in err.message
    assert 'test_runtime.py' in err.call_site
    assert 'test_check_driver_converts_status' in err.call_site
    assert str(err).startswith('Driver API error = 0218 "CUDA_ERROR_INVALID_PTX')
    assert err.exit_code == 4
    assert isinstance(err.__cause__, FakeCudaError)


def test_check_driver_custom_error(fake_driver_errors):
    def failing():
        raise FakeCudaError(200, 'CUDA_ERROR_INVALID_IMAGE', 'device kernel image is invalid')

    with pytest.raises(ModuleLoadError):
        check_driver(failing, error=ModuleLoadError)


def test_check_driver_leaves_other_errors(fake_driver_errors):
    with pytest.raises(ZeroDivisionError):
        check_driver(lambda: 1 / 0)


# ============================================================================
# Modules with a fake cupy.cuda.function
# ============================================================================

class FakeModule:
    symbols = (ENTRY_POINT,)

    def load(self, image):
        if not image.startswith(b'//'):
            raise FakeCudaError(218, 'CUDA_ERROR_INVALID_PTX', 'a PTX JIT compilation failed')
        self.image = image

    def get_function(self, name):
        if name not in self.symbols:
            raise FakeCudaError(500, 'CUDA_ERROR_NOT_FOUND', 'named symbol not found')
        calls = []

        def func(grid, block, args, shared_mem=0):
            calls.append((grid, block, args, shared_mem))
        func.calls = calls
        return func


@pytest.fixture
def fake_function(monkeypatch, fake_driver_errors):
    monkeypatch.setattr(runtime, 'HAS_CUPY', True)
    monkeypatch.setattr(runtime, 'function', types.SimpleNamespace(Module=FakeModule))


def test_load_and_resolve(fake_function):
    module = load_module(CompiledArtifact(b'// ptx'))
    handle = resolve_entry_point(module, ENTRY_POINT)
    assert isinstance(handle, KernelHandle)
    assert handle.valid

    handle.launch((2,), (256,), (1, 2, 3.0, 300))
    assert handle._func.calls == [((2,), (256,), (1, 2, 3.0, 300), 0)]


def test_malformed_image(fake_function):
    with pytest.raises(ModuleLoadError) as info:
        load_module(CompiledArtifact(b'garbage'))
    assert info.value.status == 218


def test_missing_symbol(fake_function):
    module = load_module(CompiledArtifact(b'// ptx'))
    with pytest.raises(SymbolNotFound) as info:
        resolve_entry_point(module, 'vectorSub')
    assert info.value.name == 'vectorSub'
    assert info.value.status == 500
    assert isinstance(info.value, DriverError)


def test_handle_invalid_after_unload(fake_function):
    module = load_module(CompiledArtifact(b'// ptx'))
    handle = resolve_entry_point(module, ENTRY_POINT)
    module.unload()

    assert not module.loaded
    assert not handle.valid
    with pytest.raises(DriverError) as info:
        handle.launch((1,), (256,), ())
    assert info.value.status == runtime.CUDA_ERROR_INVALID_HANDLE
    with pytest.raises(DriverError):
        resolve_entry_point(module, ENTRY_POINT)

    # повторная выгрузка ничего не делает
    module.unload()


def test_module_context_manager_unloads(fake_function):
    with load_module(CompiledArtifact(b'// ptx')) as module:
        handle = module.get_function(ENTRY_POINT)
    assert not handle.valid


def test_requires_cupy(monkeypatch):
    monkeypatch.setattr(runtime, 'HAS_CUPY', False)
    with pytest.raises(ImportError):
        load_module(CompiledArtifact(b'// ptx'))
    with pytest.raises(ImportError):
        initialize()


# ============================================================================
# Real device
# ============================================================================

@requires_gpu
@requires_nvrtc
def test_real_load_and_resolve():
    ctx = initialize()
    assert ctx.device_id == 0
    assert ctx.name

    with load_module(compile_variant(DIV)) as module:
        handle = resolve_entry_point(module, ENTRY_POINT)
        assert handle.valid
        with pytest.raises(SymbolNotFound):
            resolve_entry_point(module, 'noSuchKernel')
    ctx.close()
    assert ctx.closed


@requires_gpu
def test_real_malformed_image():
    initialize()
    with pytest.raises(ModuleLoadError):
        load_module(CompiledArtifact(b'this is not ptx'))


@requires_gpu
@requires_nvrtc
def test_real_incompatible_entry():
    source = 'extern "C" __global__ void other(float *x) { x[0] = 1.0f; }'
    initialize()
    with load_module(compile_source(source)) as module:
        with pytest.raises(SymbolNotFound):
            resolve_entry_point(module, ENTRY_POINT)
