#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

from typing import Union

import numpy as np
from scipy.special import expit, logit as _logit


ArrayLike = Union[float, np.ndarray]


def logit(p: ArrayLike) -> ArrayLike:
    """
    Log-odds of p. Defined on the open interval (0, 1); returns -inf/inf at
    the boundaries, so callers have to validate inputs first.
    """
    out = _logit(np.asarray(p, dtype=float))
    return float(out) if np.ndim(out) == 0 else out


def inv_logit(y: ArrayLike) -> ArrayLike:
    """
    Inverse of logit, 1 / (1 + exp(-y)). expit evaluates this without
    overflowing for large |y|.
    """
    out = expit(np.asarray(y, dtype=float))
    return float(out) if np.ndim(out) == 0 else out
