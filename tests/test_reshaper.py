import numpy as np
import pandas as pd
import pytest

from errors import DataValidationError, IncompleteGridError
from reshaper import align_utilizations, encode, to_matrix, validate_unit_interval
from simulator import EXPERTS, KNOWN_SPECIES, TRUE_PARAMETERS, simulate


@pytest.fixture(scope="module")
def sim():
    return simulate(KNOWN_SPECIES, EXPERTS, rng=0, **TRUE_PARAMETERS)


def test_complete_grid(sim):
    matrix = to_matrix(sim.opinions)
    assert matrix.shape == (len(KNOWN_SPECIES), len(EXPERTS))
    assert not np.isnan(matrix.values).any()
    assert matrix.species == tuple(sorted(KNOWN_SPECIES))
    assert matrix.experts == tuple(sorted(EXPERTS))


def test_cells_land_in_the_right_place(sim):
    matrix = to_matrix(sim.opinions)
    for row in sim.opinions.itertuples():
        i = matrix.species_index[row.species]
        j = matrix.expert_index[row.expert]
        assert matrix.values[i, j] == row.opinion


def test_codes_match_long_form_rows(sim):
    matrix = to_matrix(sim.opinions)
    species = [matrix.species[c] for c in matrix.species_codes]
    experts = [matrix.experts[c] for c in matrix.expert_codes]
    assert species == sim.opinions.species.tolist()
    assert experts == sim.opinions.expert.tolist()


def test_explicit_order(sim):
    matrix = to_matrix(sim.opinions, species_order=KNOWN_SPECIES, expert_order=EXPERTS)
    assert matrix.species == tuple(KNOWN_SPECIES)
    expected = sim.opinions.opinion.to_numpy().reshape(len(KNOWN_SPECIES), len(EXPERTS))
    assert np.array_equal(matrix.values, expected)


def test_index_is_immutable(sim):
    matrix = to_matrix(sim.opinions)
    with pytest.raises(TypeError):
        matrix.species_index["XXXX"] = 99


def test_incomplete_grid(sim):
    df = sim.opinions.drop(index=3)
    dropped = sim.opinions.loc[3]
    with pytest.raises(IncompleteGridError) as excinfo:
        to_matrix(df)
    assert excinfo.value.missing == [(dropped.species, dropped.expert)]
    assert "Incomplete grid" in str(excinfo.value)


def test_duplicated_cell(sim):
    df = pd.concat([sim.opinions, sim.opinions.iloc[[0]]], ignore_index=True)
    with pytest.raises(DataValidationError, match="Duplicated"):
        to_matrix(df)


def test_out_of_range_opinion(sim):
    df = sim.opinions.copy()
    df.loc[0, "opinion"] = 1.0
    with pytest.raises(DataValidationError, match="opinion"):
        to_matrix(df)


def test_missing_column(sim):
    with pytest.raises(DataValidationError, match="Missing columns"):
        to_matrix(sim.opinions.drop(columns="expert"))


def test_unknown_identifier_in_order(sim):
    with pytest.raises(DataValidationError):
        to_matrix(sim.opinions, expert_order=EXPERTS[:-1])


def test_encode_sorted():
    codes, categories = encode(["b", "a", "c", "a"])
    assert categories == ("a", "b", "c")
    assert codes.tolist() == [1, 0, 2, 0]


def test_align_utilizations(sim):
    matrix = to_matrix(sim.opinions)
    u = align_utilizations(matrix, sim.utilizations)
    by_species = dict(zip(sim.utilizations.species, sim.utilizations.utilization))
    assert u.tolist() == [by_species[s] for s in matrix.species]

    with pytest.raises(DataValidationError, match="No utilization"):
        align_utilizations(matrix, sim.utilizations.iloc[1:])


@pytest.mark.parametrize("bad", [0.0, 1.0, -0.1, np.nan, np.inf])
def test_validate_unit_interval(bad):
    with pytest.raises(DataValidationError):
        validate_unit_interval([0.5, bad], "utilization")
