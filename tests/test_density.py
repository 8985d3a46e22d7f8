import numpy as np
import pytest

from density import (
    ModelData,
    Parameters,
    build_model,
    linear_predictor,
    log_density,
)
from reshaper import align_utilizations, to_matrix
from simulator import EXPERTS, KNOWN_SPECIES, TRUE_PARAMETERS, simulate
from transforms import logit


@pytest.fixture(scope="module")
def sim():
    return simulate(KNOWN_SPECIES, EXPERTS, rng=123, **TRUE_PARAMETERS)


@pytest.fixture(scope="module")
def data(sim):
    matrix = to_matrix(
        sim.opinions, species_order=KNOWN_SPECIES, expert_order=EXPERTS
    )
    return ModelData(
        opinion_logit=logit(matrix.values),
        utilization=align_utilizations(matrix, sim.utilizations),
    )


@pytest.fixture(scope="module")
def true_params(sim):
    return Parameters(
        phi=TRUE_PARAMETERS["phi"],
        alpha=TRUE_PARAMETERS["alpha"],
        sigma_x=TRUE_PARAMETERS["sigma_x"],
        sigma_s=TRUE_PARAMETERS["sigma_s"],
        z_x=sim.expert_effects.loc[EXPERTS].to_numpy(),
        z_s=sim.species_effects.loc[KNOWN_SPECIES].to_numpy(),
    )


def test_linear_predictor_sums_before_dividing():
    opinion_logit = np.array([[-6.0, -5.0, -7.0], [-4.0, -4.5, -5.5]])
    z_x = np.array([0.1, -0.2, 0.3])
    z_s = np.array([0.05, -0.05])
    eta = linear_predictor(-0.5, opinion_logit, z_x, z_s)
    expected = [
        -0.5 + ((-6.0 + 0.1) + (-5.0 - 0.2) + (-7.0 + 0.3)) / 3 + 0.05,
        -0.5 + ((-4.0 + 0.1) + (-4.5 - 0.2) + (-5.5 + 0.3)) / 3 - 0.05,
    ]
    assert np.allclose(eta, expected)


def test_log_density_is_finite_at_truth(data, true_params):
    assert np.isfinite(log_density(true_params, data))


def test_log_density_prefers_truth_over_wrong_bias(data, true_params):
    wrong = true_params._replace(alpha=2.0)
    assert log_density(true_params, data) > log_density(wrong, data)


def test_log_density_rejects_invalid(data, true_params):
    assert log_density(true_params._replace(phi=0.0), data) == -np.inf
    assert log_density(true_params._replace(phi=-1.0), data) == -np.inf
    assert log_density(true_params._replace(sigma_x=-0.1), data) == -np.inf
    assert log_density(true_params._replace(sigma_s=-0.1), data) == -np.inf


def test_zero_scale_with_zero_effects(data, true_params):
    params = true_params._replace(sigma_x=0.0, z_x=np.zeros(len(EXPERTS)))
    lp = log_density(params, data)
    assert np.isfinite(lp)
    assert lp > log_density(params._replace(alpha=2.0), data)


def test_zero_scale_with_nonzero_effect(data, true_params):
    z_x = np.zeros(len(EXPERTS))
    z_x[0] = 0.1
    params = true_params._replace(sigma_x=0.0, z_x=z_x)
    assert log_density(params, data) == -np.inf

    z_s = np.zeros(len(KNOWN_SPECIES))
    z_s[-1] = -0.05
    params = true_params._replace(sigma_s=0.0, z_s=z_s)
    assert log_density(params, data) == -np.inf


def test_pymc_model_matches_log_density(data, true_params):
    model = build_model(data, experts=EXPERTS, species=KNOWN_SPECIES)
    logp = model.compile_logp(jacobian=False)
    point = {
        "phi_log__": np.log(true_params.phi),
        "alpha": np.array(true_params.alpha),
        "sigma_x_log__": np.log(true_params.sigma_x),
        "sigma_s_log__": np.log(true_params.sigma_s),
        "z_x_raw": true_params.z_x / true_params.sigma_x,
        "z_s_raw": true_params.z_s / true_params.sigma_s,
    }
    # standard normal raw effects differ from the centered density by the
    # log scale of each effect
    expected = (
        log_density(true_params, data)
        + len(EXPERTS) * np.log(true_params.sigma_x)
        + len(KNOWN_SPECIES) * np.log(true_params.sigma_s)
    )
    assert np.isclose(float(logp(point)), expected, rtol=1e-8, atol=1e-6)


def test_pymc_model_coords(data):
    model = build_model(data, experts=EXPERTS, species=KNOWN_SPECIES)
    assert list(model.coords["expert"]) == EXPERTS
    assert list(model.coords["species"]) == KNOWN_SPECIES
    assert {"z_x", "z_s"} <= set(model.named_vars)
