#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

import logging
import warnings
from typing import List, NamedTuple, Optional, Tuple, Union

import numpy as np
import pandas as pd
import pymc as pm

from base import BaseModel
from density import ModelData, build_model, linear_predictor
from errors import ConvergenceWarning
from reshaper import OpinionMatrix, align_utilizations, to_matrix
from simulator import RandomState, as_generator
from stats import PosteriorSamples
from transforms import inv_logit, logit


logger = logging.getLogger(__name__)


Seed = Union[None, int, np.random.SeedSequence]


class Prediction(NamedTuple):
    species: Tuple[str, ...]
    mu: np.ndarray  # (draws x species) predicted mean utilization
    utilization: np.ndarray  # (draws x species) predictive utilization
    summary: pd.DataFrame


def chain_seeds(seed: Seed, chains: int) -> List[int]:
    """One integer seed per chain, spawned from a single seed."""
    if not isinstance(seed, np.random.SeedSequence):
        seed = np.random.SeedSequence(seed)
    return [int(child.generate_state(1)[0]) for child in seed.spawn(chains)]


class ExpertBiasModel(BaseModel):
    """
    Hierarchical beta regression correcting expert opinions of species
    utilization for an overall bias (alpha), per-expert offsets (z_x) and
    per-species offsets (z_s).

    Fit on species whose utilization is known, then `predict` utilization
    of species that only have expert opinions.
    """

    def __init__(
        self,
        chains: int = 4,
        iterations: int = 5000,  # per chain, including warmup
        warmup: Optional[int] = None,  # defaults to half of the iterations
        n_jobs: Optional[int] = None,  # one worker per chain if None
        target_accept: float = 0.9,
        r_hat_threshold: float = 1.01,
    ):
        super().__init__("ExpertBiasModel")
        if chains < 1:
            raise ValueError(f"chains must be positive, got {chains}")
        warmup = iterations // 2 if warmup is None else warmup
        if not 0 <= warmup < iterations:
            raise ValueError(f"warmup must be in [0, {iterations}), got {warmup}")

        self.chains = chains
        self.iterations = iterations
        self.warmup = warmup
        self.n_jobs = chains if n_jobs is None else n_jobs
        self.target_accept = target_accept
        self.r_hat_threshold = r_hat_threshold
        self.model: Optional[pm.Model] = None
        self.matrix: Optional[OpinionMatrix] = None
        self.samples: Optional[PosteriorSamples] = None

    def _check_convergence(self, samples: PosteriorSamples) -> None:
        r_hat = samples.r_hat()
        bad = r_hat[~np.isfinite(r_hat) | (r_hat > self.r_hat_threshold)]
        if len(bad) > 0:
            msg = (
                f"{len(bad)} parameter(s) with r_hat above "
                f"{self.r_hat_threshold}, max r_hat = {samples.max_r_hat:.3f}: "
                f"{bad.round(3).to_dict()}"
            )
            logger.warning(msg)
            warnings.warn(msg, ConvergenceWarning)
        else:
            logger.info(f"  max r_hat = {samples.max_r_hat:.4f}")

        if samples.divergences > 0:
            logger.warning(
                f"{samples.divergences} divergent transition(s) after warmup, "
                f"per chain: {samples.divergences_per_chain.tolist()}"
            )

    def fit(
        self,
        opinions: pd.DataFrame,
        utilizations: pd.DataFrame,
        seed: Seed = None,
    ) -> PosteriorSamples:
        """
        Args:
            opinions: long-form table with columns species, expert, opinion
            utilizations: table with columns species, utilization
            seed: seeds all chains of the sampler
        """
        logger.info("Fitting ...")

        matrix = to_matrix(opinions)
        utilization = align_utilizations(matrix, utilizations)
        logger.info(f" S = {len(matrix.species)}")
        logger.info(f" X = {len(matrix.experts)}")
        logger.info(
            f" chains = {self.chains}, iterations = {self.iterations}, "
            f"warmup = {self.warmup}, n_jobs = {self.n_jobs}"
        )

        data = ModelData(opinion_logit=logit(matrix.values), utilization=utilization)
        model = build_model(data, experts=matrix.experts, species=matrix.species)
        with model:
            trace = pm.sample(
                draws=self.iterations - self.warmup,
                tune=self.warmup,
                chains=self.chains,
                cores=min(self.n_jobs, self.chains),
                target_accept=self.target_accept,
                random_seed=chain_seeds(seed, self.chains),
                progressbar=False,
                compute_convergence_checks=False,
                return_inferencedata=True,
            )
        logger.info("Done sampling!")

        samples = PosteriorSamples(trace)
        self._check_convergence(samples)

        self.model = model
        self.matrix = matrix
        self.samples = samples
        self.is_fitted = True
        return samples

    def predict(
        self,
        opinions: pd.DataFrame,
        seed: RandomState = None,
        ci: float = 0.9,
    ) -> Prediction:
        """
        Predictive utilization of species without known utilization. Each
        posterior draw gets a fresh species effect from Normal(0, sigma_s),
        since no fitted effect exists for a new species.
        """
        self._check_is_fitted()
        rng = as_generator(seed)

        # columns follow the fitted experts; unknown experts raise
        matrix = to_matrix(opinions, expert_order=self.matrix.experts)
        opinion_logit = logit(matrix.values)

        alpha = self.samples.draws("alpha")
        phi = self.samples.draws("phi")
        sigma_s = self.samples.draws("sigma_s")
        z_x = self.samples.draws("z_x")
        num_draws = len(alpha)
        S = len(matrix.species)
        logger.info(f"Predicting {S} species from {num_draws} posterior draws")

        z_s_new = rng.normal(0.0, 1.0, (num_draws, S)) * sigma_s[:, np.newaxis]
        eta = linear_predictor(
            alpha[:, np.newaxis],
            opinion_logit[np.newaxis, :, :],
            z_x[:, np.newaxis, :],
            z_s_new,
        )
        mu = inv_logit(eta)
        phi = phi[:, np.newaxis]
        utilization = rng.beta(mu * phi, (1.0 - mu) * phi)

        lb = 50.0 * (1.0 - ci)
        lower, median, upper = np.percentile(
            utilization, [lb, 50.0, 100.0 - lb], axis=0
        )
        summary = pd.DataFrame(
            {
                "species": matrix.species,
                "mean_opinion": matrix.values.mean(axis=1),
                "mu_mean": mu.mean(axis=0),
                "mean": utilization.mean(axis=0),
                "median": median,
                "lower": lower,
                "upper": upper,
            }
        )
        return Prediction(
            species=matrix.species, mu=mu, utilization=utilization, summary=summary
        )

    def get_parameter(self, name: str, ci: float = 0.9):
        self._check_is_fitted()
        draws = self.samples.draws(name)
        lb = 50.0 * (1.0 - ci)
        ci_est = np.percentile(draws, [lb, 100.0 - lb], axis=0)
        return {"mean": np.mean(draws, axis=0).tolist(), "ci": ci_est.tolist()}

    def get_expert_effects(self, ci: float = 0.9) -> pd.DataFrame:
        self._check_is_fitted()
        summary = self.samples.summary(ci)
        effects = summary[summary.index.str.startswith("z_x[")].copy()
        effects.index = list(self.matrix.experts)
        effects.index.name = "expert"
        return effects
