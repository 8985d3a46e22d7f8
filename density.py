#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

from typing import NamedTuple, Sequence

import numpy as np
import pymc as pm
import pytensor.tensor as pt
from scipy.stats import beta, expon, gamma, norm

from transforms import inv_logit


# Priors. phi needs to reach 1e3 - 1e6 because utilizations are tiny.
PHI_SHAPE = 1.0
PHI_RATE = 1e-5
ALPHA_SD = 5.0
SIGMA_RATE = 1.0


class ModelData(NamedTuple):
    opinion_logit: np.ndarray  # (S x X)
    utilization: np.ndarray  # (S,)


class Parameters(NamedTuple):
    phi: float
    alpha: float
    sigma_x: float
    sigma_s: float
    z_x: np.ndarray  # (X,)
    z_s: np.ndarray  # (S,)


def linear_predictor(alpha, opinion_logit, z_x, z_s):
    """
    Logit of the mean utilization: alpha plus the average over experts of
    (opinion logit + expert effect), plus the species effect. The sum over
    experts is taken before dividing by the number of experts.

    Works on numpy arrays and on pytensor variables alike.
    """
    num_experts = opinion_logit.shape[-1]
    return alpha + (opinion_logit + z_x).sum(axis=-1) / num_experts + z_s


def _random_effect_logpdf(z: np.ndarray, sigma: float) -> float:
    # a zero scale puts all the mass on z == 0
    if sigma == 0:
        return 0.0 if np.all(np.asarray(z) == 0) else -np.inf
    return float(np.sum(norm.logpdf(z, 0.0, sigma)))


def log_density(params: Parameters, data: ModelData) -> float:
    """Joint log density of parameters and known utilizations."""
    if params.phi <= 0 or params.sigma_x < 0 or params.sigma_s < 0:
        return -np.inf

    lp = gamma.logpdf(params.phi, a=PHI_SHAPE, scale=1.0 / PHI_RATE)
    lp += norm.logpdf(params.alpha, 0.0, ALPHA_SD)
    lp += expon.logpdf(params.sigma_x, scale=1.0 / SIGMA_RATE)
    lp += expon.logpdf(params.sigma_s, scale=1.0 / SIGMA_RATE)
    lp += _random_effect_logpdf(params.z_x, params.sigma_x)
    lp += _random_effect_logpdf(params.z_s, params.sigma_s)
    if not np.isfinite(lp):
        return -np.inf

    eta = linear_predictor(
        params.alpha, np.asarray(data.opinion_logit), params.z_x, params.z_s
    )
    mu = inv_logit(eta)
    lp += np.sum(
        beta.logpdf(data.utilization, mu * params.phi, (1.0 - mu) * params.phi)
    )
    return float(lp)


def build_model(
    data: ModelData, experts: Sequence[str], species: Sequence[str]
) -> pm.Model:
    """
    The same model as `log_density`, declared in PyMC. Random effects are
    non-centered: z_x = sigma_x * z_x_raw with z_x_raw ~ Normal(0, 1), which
    leaves the posterior unchanged.
    """
    coords = {"expert": list(experts), "species": list(species)}
    opinion_logit = pt.as_tensor_variable(
        np.asarray(data.opinion_logit, dtype=float)
    )

    with pm.Model(coords=coords) as model:
        phi = pm.Gamma("phi", alpha=PHI_SHAPE, beta=PHI_RATE)
        alpha = pm.Normal("alpha", mu=0.0, sigma=ALPHA_SD)
        sigma_x = pm.Exponential("sigma_x", lam=SIGMA_RATE)
        sigma_s = pm.Exponential("sigma_s", lam=SIGMA_RATE)

        z_x_raw = pm.Normal("z_x_raw", mu=0.0, sigma=1.0, dims="expert")
        z_s_raw = pm.Normal("z_s_raw", mu=0.0, sigma=1.0, dims="species")
        z_x = pm.Deterministic("z_x", sigma_x * z_x_raw, dims="expert")
        z_s = pm.Deterministic("z_s", sigma_s * z_s_raw, dims="species")

        mu = pm.math.invlogit(linear_predictor(alpha, opinion_logit, z_x, z_s))
        pm.Beta(
            "utilization",
            alpha=mu * phi,
            beta=(1.0 - mu) * phi,
            observed=np.asarray(data.utilization, dtype=float),
            dims="species",
        )

    return model
