#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.


class DataValidationError(ValueError):
    pass


class IncompleteGridError(DataValidationError):
    """Raised when a (species, expert) cell has no opinion."""

    def __init__(self, missing):
        self.missing = list(missing)
        shown = ", ".join(f"({s}, {e})" for s, e in self.missing[:10])
        more = "" if len(self.missing) <= 10 else f" and {len(self.missing) - 10} more"
        super().__init__(
            f"Incomplete grid: {len(self.missing)} missing opinion(s): {shown}{more}"
        )


class NotFittedError(RuntimeError):
    pass


class ConvergenceWarning(UserWarning):
    pass
