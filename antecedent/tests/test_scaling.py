import numpy as np

from antecedent.antecedent.scaling import fit_event_scaling, fit_precip_scaling, standardize_npp


def test_standardize_npp_ignores_missing_values():
    y_std, center, scale = standardize_npp(np.array([10.0, np.nan, 20.0]))
    assert center == 15.0
    assert np.isclose(scale, np.std([10.0, 20.0], ddof=1))
    assert np.isnan(y_std[1])
    np.testing.assert_allclose(y_std[[0, 2]], [-1 / np.sqrt(2), 1 / np.sqrt(2)])


def test_standardize_npp_without_observations_is_identity():
    y_std, center, scale = standardize_npp(np.full(3, np.nan))
    assert (center, scale) == (0.0, 1.0)
    assert np.isnan(y_std).all()


def test_fit_precip_scaling_centres_each_cell():
    windows = np.stack([np.zeros((2, 12)), np.full((2, 12), 4.0)])
    amounts = np.array([[0.0] * 12, [4.0] * 12])
    center, scale = fit_precip_scaling(windows, amounts)
    assert center.shape == (2, 12)
    np.testing.assert_allclose(center, 2.0)
    assert scale == 2.0

    center, _ = fit_precip_scaling(windows, amounts, center=False)
    np.testing.assert_array_equal(center, 0.0)


def test_fit_event_scaling_guards_constant_columns():
    events = np.array([[1.0, 5.0, 0.0, 2.0], [3.0, 5.0, 0.0, 6.0]])
    center, scale = fit_event_scaling(events)
    np.testing.assert_allclose(center, [2.0, 5.0, 0.0, 4.0])
    np.testing.assert_allclose(scale, [1.0, 1.0, 1.0, 2.0])


def test_fit_precip_scaling_guards_constant_history():
    _, scale = fit_precip_scaling(np.ones((3, 1, 12)), np.ones((4, 12)))
    assert scale == 1.0


def test_standardize_npp_accepts_reference_scales():
    y_std, center, scale = standardize_npp(np.full(2, np.nan), center=100.0, scale=20.0)
    assert (center, scale) == (100.0, 20.0)
    assert np.isnan(y_std).all()

    y_std, center, scale = standardize_npp(np.array([110.0, 90.0]), center=100.0, scale=20.0)
    np.testing.assert_allclose(y_std, [0.5, -0.5])
