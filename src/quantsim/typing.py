from __future__ import annotations

from collections.abc import Callable

import numpy as np
from numpy.typing import NDArray

# typing only
type FloatArray = NDArray[np.floating]
type ArrayLike = float | np.ndarray | np.floating
type TimeFn = Callable[[float], float]
type Coefficient = float | TimeFn

# Runtime types
FloatDType = np.float64  # runtime dtype only
