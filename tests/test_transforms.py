import numpy as np

from transforms import inv_logit, logit


def test_round_trip():
    p = np.linspace(1e-6, 1 - 1e-6, 1001)
    assert np.allclose(inv_logit(logit(p)), p, rtol=0, atol=1e-9)


def test_inv_logit_strictly_inside_unit_interval():
    y = np.linspace(-30, 30, 601)
    out = inv_logit(y)
    assert np.all(out > 0.0)
    assert np.all(out < 1.0)


def test_inv_logit_does_not_overflow():
    out = inv_logit(np.array([-800.0, 800.0]))
    assert np.all(np.isfinite(out))
    assert out[0] == 0.0 or out[0] < 1e-300
    assert out[1] == 1.0


def test_logit_boundaries():
    assert logit(0.0) == -np.inf
    assert logit(1.0) == np.inf
    assert logit(0.5) == 0.0


def test_scalars_give_floats():
    assert isinstance(logit(0.25), float)
    assert isinstance(inv_logit(0.0), float)
    assert inv_logit(0.0) == 0.5
    assert np.isclose(logit(0.25), np.log(1 / 3))
