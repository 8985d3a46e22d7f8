#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

import logging
from typing import List, NamedTuple, Optional, Sequence, Union

import numpy as np
import pandas as pd

from transforms import inv_logit, logit


logger = logging.getLogger(__name__)


# Four-letter AOU codes of the species with surveyed lease-area utilization
KNOWN_SPECIES = [
    "NOGA",  # Northern Gannet
    "COLO",  # Common Loon
    "RTLO",  # Red-throated Loon
    "RAZO",  # Razorbill
    "COMU",  # Common Murre
    "BLKI",  # Black-legged Kittiwake
    "HERG",  # Herring Gull
    "GBBG",  # Great Black-backed Gull
    "LAGU",  # Laughing Gull
    "NOFU",  # Northern Fulmar
]

# Species with expert opinions only
UNKNOWN_SPECIES = [
    "ATPU",  # Atlantic Puffin
    "DOVE",  # Dovekie
    "ROST",  # Roseate Tern
    "WISP",  # Wilson's Storm-Petrel
]

EXPERTS = [
    "Adams",
    "Baker",
    "Chen",
    "Diaz",
    "Evans",
    "Fischer",
    "Garcia",
    "Hughes",
]

TRUE_PARAMETERS = {"alpha": -0.5, "phi": 1e4, "sigma_x": 0.1, "sigma_s": 0.2}

OPINION_SIGMA = 0.25

# Range of the baseline utilization used to centre simulated opinions
BASELINE_RANGE = (0.0001, 0.003)


RandomState = Union[None, int, np.random.Generator]


class SimulatedDataset(NamedTuple):
    opinions: pd.DataFrame  # expert, species, opinion
    utilizations: pd.DataFrame  # species, utilization
    expert_effects: pd.Series
    species_effects: pd.Series
    baseline: pd.Series


class CaseStudyData(NamedTuple):
    known_opinions: pd.DataFrame
    known_utilizations: pd.DataFrame
    unknown_opinions: pd.DataFrame
    unknown_utilizations: pd.DataFrame  # held out, never passed to fit
    truth: SimulatedDataset


def as_generator(rng: RandomState) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def simulate(
    species: Sequence[str],
    experts: Sequence[str],
    alpha: float,
    phi: float,
    sigma_x: float,
    sigma_s: float,
    opinion_sigma: float = OPINION_SIGMA,
    rng: RandomState = None,
) -> SimulatedDataset:
    """
    Generate expert opinions and true utilizations following the
    hierarchical beta model.

    Args:
        species: species identifiers
        experts: expert identifiers
        alpha: overall bias on the logit scale
        phi: beta dispersion of utilization around its mean
        sigma_x: scale of the expert effects
        sigma_s: scale of the species effects
        opinion_sigma: noise of a single opinion on the logit scale
        rng: generator or seed; draws are taken in a fixed order (effects,
            baseline, opinions, utilizations)
    """
    rng = as_generator(rng)
    species = list(species)
    experts = list(experts)
    S = len(species)
    X = len(experts)

    logger.info(f"Simulating {S} species x {X} experts")
    logger.info(
        f"  alpha = {alpha}, phi = {phi}, sigma_x = {sigma_x}, sigma_s = {sigma_s}"
    )

    z_x = rng.normal(0.0, sigma_x, X)
    z_s = rng.normal(0.0, sigma_s, S)

    # dummy utilization, only used to centre the opinions
    baseline = rng.uniform(BASELINE_RANGE[0], BASELINE_RANGE[1], S)

    loc = logit(baseline)[:, np.newaxis] + z_x[np.newaxis, :] + z_s[:, np.newaxis]
    opinions = inv_logit(rng.normal(loc, opinion_sigma))

    opinion_logit = logit(opinions)
    eta = alpha + np.sum(opinion_logit + z_x[np.newaxis, :], axis=1) / X + z_s
    mu = inv_logit(eta)
    utilizations = rng.beta(mu * phi, (1.0 - mu) * phi)

    df_opinions = pd.DataFrame(
        {
            "expert": np.tile(experts, S),
            "species": np.repeat(species, X),
            "opinion": opinions.ravel(),
        }
    )
    df_utilizations = pd.DataFrame({"species": species, "utilization": utilizations})

    return SimulatedDataset(
        opinions=df_opinions,
        utilizations=df_utilizations,
        expert_effects=pd.Series(z_x, index=experts, name="z_x"),
        species_effects=pd.Series(z_s, index=species, name="z_s"),
        baseline=pd.Series(baseline, index=species, name="baseline"),
    )


def simulate_case_study(
    seed: RandomState = 1,
    known_species: Optional[List[str]] = None,
    unknown_species: Optional[List[str]] = None,
    experts: Optional[List[str]] = None,
    **params,
) -> CaseStudyData:
    """
    Simulate known and unknown species with the same panel of experts, then
    hold out the utilizations of the unknown species.
    """
    known_species = KNOWN_SPECIES if known_species is None else known_species
    unknown_species = UNKNOWN_SPECIES if unknown_species is None else unknown_species
    experts = EXPERTS if experts is None else experts
    true_params = dict(TRUE_PARAMETERS)
    true_params.update(params)

    data = simulate(
        species=list(known_species) + list(unknown_species),
        experts=experts,
        rng=seed,
        **true_params,
    )

    is_known_op = data.opinions.species.isin(known_species)
    is_known_ut = data.utilizations.species.isin(known_species)

    return CaseStudyData(
        known_opinions=data.opinions[is_known_op].reset_index(drop=True),
        known_utilizations=data.utilizations[is_known_ut].reset_index(drop=True),
        unknown_opinions=data.opinions[~is_known_op].reset_index(drop=True),
        unknown_utilizations=data.utilizations[~is_known_ut].reset_index(drop=True),
        truth=data,
    )
