"""
jitbench - Errors

Все ошибки конвейера. Каждая категория имеет свой код выхода процесса.
"""

from __future__ import annotations
from typing import Iterable, Optional


class BenchError(Exception):
    """Базовая ошибка бенчмарка."""
    exit_code = 1


class UnknownVariant(BenchError):
    """Неизвестный идентификатор варианта kernel."""
    exit_code = 2

    def __init__(self, variant_id, known: Iterable[int] = ()):
        self.variant_id = variant_id
        self.known = tuple(known)
        super().__init__(
            f"Unknown kernel variant {variant_id!r}. Available: {list(self.known)}"
        )


class CompileError(BenchError):
    """Ошибка компиляции NVRTC (с логом компилятора)."""
    exit_code = 3

    def __init__(self, message: str, log: str = ""):
        self.log = log
        if log:
            message = f"{message}\nLog: {log}"
        super().__init__(message)


class DriverError(BenchError):
    """Ошибка CUDA драйвера: код, сообщение, место вызова."""
    exit_code = 4

    def __init__(self, status: int, message: str, call_site: Optional[str] = None):
        self.status = status
        self.message = message
        self.call_site = call_site
        text = f'Driver API error = {status:04d} "{message}"'
        if call_site:
            text += f" from {call_site}"
        super().__init__(text)


class ModuleLoadError(DriverError):
    """Скомпилированный образ не загружается на текущее устройство."""


class SymbolNotFound(DriverError):
    """Точка входа отсутствует в модуле."""

    def __init__(self, name: str, status: int, message: str, call_site: Optional[str] = None):
        self.name = name
        super().__init__(status, f"{message} (entry point '{name}')", call_site)


class OutOfMemory(BenchError):
    """Не удалось выделить host память."""
    exit_code = 5

    def __init__(self, nbytes: int):
        self.nbytes = nbytes
        super().__init__(f"Failed to allocate host vectors! ({nbytes} bytes)")


class VerificationMismatch(BenchError):
    """Результат не совпал с ожидаемым."""
    exit_code = 6

    def __init__(self, index: int, got: float, expected: float):
        self.index = index
        self.got = got
        self.expected = expected
        super().__init__(
            f"Wrong result ! index {index}: got {got!r}, expected {expected!r}"
        )
