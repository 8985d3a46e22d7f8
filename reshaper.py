#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

import logging
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from errors import DataValidationError, IncompleteGridError


logger = logging.getLogger(__name__)


class OpinionMatrix(NamedTuple):
    values: np.ndarray  # (S x X) opinions, rows follow `species`
    species: Tuple[str, ...]
    experts: Tuple[str, ...]
    species_index: Mapping[str, int]
    expert_index: Mapping[str, int]
    species_codes: np.ndarray  # dense code of each long-form row
    expert_codes: np.ndarray

    @property
    def shape(self):
        return self.values.shape


def validate_unit_interval(values, name: str) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    bad = ~np.isfinite(values) | (values <= 0.0) | (values >= 1.0)
    if np.any(bad):
        raise DataValidationError(
            f"{int(np.sum(bad))} {name} value(s) outside the open interval (0, 1): "
            f"{values[bad][:5].tolist()}"
        )
    return values


def encode(
    values: Sequence[str], order: Optional[Sequence[str]] = None
) -> Tuple[np.ndarray, Tuple[str, ...]]:
    """
    Map identifiers to dense integer codes. Categories are sorted unless an
    explicit order is given.
    """
    if order is None:
        codes, uniques = pd.factorize(pd.Series(values), sort=True)
        return codes.astype(int), tuple(uniques.tolist())

    order = tuple(order)
    cat = pd.Categorical(values, categories=order)
    codes = np.asarray(cat.codes, dtype=int)
    if np.any(codes < 0):
        unknown = sorted(set(np.asarray(values)[codes < 0].tolist()))
        raise DataValidationError(f"Identifiers not in the given order: {unknown}")
    return codes, order


def to_matrix(
    opinions: pd.DataFrame,
    species_order: Optional[Sequence[str]] = None,
    expert_order: Optional[Sequence[str]] = None,
    species_col: str = "species",
    expert_col: str = "expert",
    value_col: str = "opinion",
) -> OpinionMatrix:
    """
    Pivot long-form (species, expert, opinion) rows into a dense species x
    expert matrix.

    Raises:
        IncompleteGridError: some (species, expert) cell has no opinion
        DataValidationError: missing columns, duplicated cells or values
            outside (0, 1)
    """
    missing_cols = {species_col, expert_col, value_col} - set(opinions.columns)
    if missing_cols:
        raise DataValidationError(f"Missing columns: {sorted(missing_cols)}")

    duplicated = opinions.duplicated(subset=[species_col, expert_col], keep=False)
    if duplicated.any():
        pairs = opinions.loc[duplicated, [species_col, expert_col]].drop_duplicates()
        raise DataValidationError(
            f"Duplicated opinions for {list(pairs.itertuples(index=False, name=None))}"
        )

    species_codes, species = encode(opinions[species_col].tolist(), species_order)
    expert_codes, experts = encode(opinions[expert_col].tolist(), expert_order)

    S, X = len(species), len(experts)
    values = np.full((S, X), np.nan)
    values[species_codes, expert_codes] = opinions[value_col].to_numpy(dtype=float)

    missing = np.argwhere(np.isnan(values))
    if len(missing) > 0:
        raise IncompleteGridError((species[i], experts[j]) for i, j in missing)

    validate_unit_interval(values, "opinion")
    logger.info(f"Reshaped {len(opinions)} opinions into a {S} x {X} matrix")

    return OpinionMatrix(
        values=values,
        species=species,
        experts=experts,
        species_index=MappingProxyType({s: i for i, s in enumerate(species)}),
        expert_index=MappingProxyType({e: j for j, e in enumerate(experts)}),
        species_codes=species_codes,
        expert_codes=expert_codes,
    )


def align_utilizations(
    matrix: OpinionMatrix,
    utilizations: pd.DataFrame,
    species_col: str = "species",
    value_col: str = "utilization",
) -> np.ndarray:
    """Utilization vector in the row order of `matrix`."""
    if utilizations[species_col].duplicated().any():
        raise DataValidationError("Duplicated species in utilizations")
    by_species = utilizations.set_index(species_col)[value_col]
    missing = [s for s in matrix.species if s not in by_species.index]
    if missing:
        raise DataValidationError(f"No utilization for species {missing}")
    return validate_unit_interval(
        by_species.loc[list(matrix.species)].to_numpy(dtype=float), "utilization"
    )
