#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import arviz as az
import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


PARAMETERS = ("phi", "alpha", "sigma_x", "sigma_s", "z_x", "z_s")


class PosteriorSamples:
    """
    Posterior draws of the model parameters, read from an ArviZ
    InferenceData. Arrays are shaped (chains x draws) or
    (chains x draws x dim) for the random effects.
    """

    def __init__(
        self, trace: az.InferenceData, var_names: Optional[Sequence[str]] = None
    ) -> None:
        self.trace = trace
        if var_names is None:
            var_names = [v for v in PARAMETERS if v in trace.posterior]
        self.var_names = list(var_names)

    def __repr__(self):
        return (
            f"PosteriorSamples(chains = {self.num_chains}, "
            f"draws = {self.num_draws}, params = {self.var_names})"
        )

    def __getitem__(self, name: str) -> np.ndarray:
        return self.trace.posterior[name].values

    @property
    def params(self) -> Dict[str, np.ndarray]:
        return {name: self[name] for name in self.var_names}

    @property
    def num_chains(self) -> int:
        return self.trace.posterior.sizes["chain"]

    @property
    def num_draws(self) -> int:
        return self.trace.posterior.sizes["draw"]

    @property
    def coords(self) -> Dict[str, List[str]]:
        """Labels along the last dimension of each vector parameter."""
        coords = {}
        for name in self.var_names:
            var = self.trace.posterior[name]
            if var.ndim == 3:
                coords[name] = var.coords[var.dims[2]].values.tolist()
        return coords

    def draws(self, name: str) -> np.ndarray:
        """Draws of `name` with the chains concatenated."""
        values = self[name]
        return values.reshape((-1,) + values.shape[2:])

    def iter_scalars(self) -> Iterator[Tuple[str, np.ndarray]]:
        coords = self.coords
        for name in self.var_names:
            values = self[name]
            if values.ndim == 2:
                yield name, values
            else:
                for k, label in enumerate(coords[name]):
                    yield f"{name}[{label}]", values[:, :, k]

    def diagnostics(self) -> pd.DataFrame:
        """r_hat, bulk/tail ESS and MCSE per scalar, from ArviZ."""
        return az.summary(
            self.trace,
            var_names=self.var_names,
            kind="diagnostics",
            round_to="none",
        )

    def r_hat(self) -> pd.Series:
        return self.diagnostics()["r_hat"]

    @property
    def max_r_hat(self) -> float:
        r_hat = self.r_hat().to_numpy(dtype=float)
        if np.any(~np.isfinite(r_hat)):
            return np.inf
        return float(np.max(r_hat))

    @property
    def divergences_per_chain(self) -> np.ndarray:
        sample_stats = getattr(self.trace, "sample_stats", None)
        if sample_stats is None or "diverging" not in sample_stats:
            return np.zeros(self.num_chains, dtype=int)
        return sample_stats["diverging"].values.sum(axis=1).astype(int)

    @property
    def divergences(self) -> int:
        return int(np.sum(self.divergences_per_chain))

    def summary(self, ci: float = 0.9) -> pd.DataFrame:
        lb = 50.0 * (1.0 - ci)
        ub = 100.0 - lb
        rows = {}
        for label, values in self.iter_scalars():
            flat = values.ravel()
            lower, median, upper = np.percentile(flat, [lb, 50.0, ub])
            rows[label] = {
                "mean": np.mean(flat),
                "sd": np.std(flat, ddof=1) if len(flat) > 1 else np.nan,
                "lower": lower,
                "median": median,
                "upper": upper,
            }
        summary = pd.DataFrame.from_dict(rows, orient="index")
        diagnostics = self.diagnostics()[["r_hat", "ess_bulk", "ess_tail"]]
        return summary.join(diagnostics)

    def to_frame(self) -> pd.DataFrame:
        """One row per draw, one column per scalar parameter."""
        df = pd.DataFrame(
            {label: values.ravel() for label, values in self.iter_scalars()}
        )
        df.insert(0, "chain", np.repeat(np.arange(self.num_chains), self.num_draws))
        df.insert(1, "draw", np.tile(np.arange(self.num_draws), self.num_chains))
        return df
