"""
jitbench - Verification

Сравнивает результат kernel с аналитически вычисленным ожиданием.
"""

from __future__ import annotations
from typing import Union

import numpy as np

from .errors import VerificationMismatch
from .kernels import KernelVariant, resolve


TOLERANCE = 1e-10


def expected_result(inputs: np.ndarray, scalar: float, variant: KernelVariant) -> np.ndarray:
    """inputs[i] * M, где M = 1/C для div и C для mul."""
    return np.asarray(inputs, dtype=np.float64) * variant.expected_scale(scalar)


def verify(
    result: np.ndarray,
    inputs: np.ndarray,
    scalar: float,
    variant: Union[KernelVariant, int],
    tolerance: float = TOLERANCE,
):
    """
    variant - KernelVariant или его id.

    Бросает VerificationMismatch на первом индексе, где
    |result[i] - expected[i]| > tolerance. NaN считается несовпадением.
    """
    if not isinstance(variant, KernelVariant):
        variant = resolve(variant)
    result = np.asarray(result, dtype=np.float64)
    if result.shape != np.shape(inputs):
        raise ValueError(f"shape mismatch: result {result.shape}, inputs {np.shape(inputs)}")

    expected = expected_result(inputs, scalar, variant)
    # not (diff <= tol), чтобы NaN тоже попадал в ошибки
    bad = np.flatnonzero(~(np.abs(result - expected) <= tolerance))
    if bad.size:
        i = int(bad[0])
        raise VerificationMismatch(i, float(result[i]), float(expected[i]))
