"""
jitbench - Kernel Sources

Фиксированный набор вариантов kernel. Все варианты экспортируют одну и ту же
точку входа, поэтому загрузчик, цикл запусков и проверка не зависят от
выбранного варианта.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List

from .errors import UnknownVariant


ENTRY_POINT = 'vectorAdd'


_TEMPLATE = '''
extern "C" __global__ void {entry}(double *A, double *B, double C, int numElements) {{
  int i = blockDim.x * blockIdx.x + threadIdx.x;
  if (i < numElements)
    A[i] = B[i] {op} C;
}}
'''


@dataclass(frozen=True)
class KernelVariant:
    """Вариант kernel: A[i] = B[i] <op> C."""
    id: int
    name: str
    source: str
    entry_point: str
    expected_scale: Callable[[float], float]

    def __repr__(self) -> str:
        return f"KernelVariant({self.id}, {self.name!r})"


def _variant(variant_id: int, name: str, op: str, scale: Callable[[float], float]) -> KernelVariant:
    return KernelVariant(
        id=variant_id,
        name=name,
        source=_TEMPLATE.format(entry=ENTRY_POINT, op=op),
        entry_point=ENTRY_POINT,
        expected_scale=scale,
    )


DIV = _variant(0, 'div', '/', lambda c: 1.0 / c)
MUL = _variant(1, 'mul', '*', lambda c: c)

_REGISTRY: Dict[int, KernelVariant] = {v.id: v for v in (DIV, MUL)}


def resolve(variant_id: int) -> KernelVariant:
    """Возвращает вариант по id или бросает UnknownVariant."""
    # bool - подкласс int, но как селектор не принимается
    if isinstance(variant_id, bool) or not isinstance(variant_id, int):
        raise UnknownVariant(variant_id, _REGISTRY)
    try:
        return _REGISTRY[variant_id]
    except KeyError:
        raise UnknownVariant(variant_id, _REGISTRY) from None


def variants() -> List[KernelVariant]:
    """Все зарегистрированные варианты в порядке id."""
    return [_REGISTRY[k] for k in sorted(_REGISTRY)]
