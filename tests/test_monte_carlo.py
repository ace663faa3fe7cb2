"""Tests for monte_carlo — repeat seeding, percentile bands and the thread pool."""

import pytest

from narrasim.core.model_spec import DomainError, Scenario
from narrasim.core.monte_carlo import percentile_bands, quantile, run_monte_carlo
from narrasim.core.simulator import simulate


def _scenario(**kwargs) -> Scenario:
    return Scenario.model_validate({"title": "MC", "days": 15, **kwargs})


class TestQuantile:
    def test_nearest_rank_without_interpolation(self):
        samples = [5.0, 1.0, 4.0, 2.0, 3.0]
        assert quantile(samples, 0.10) == 1.0
        assert quantile(samples, 0.50) == 3.0
        assert quantile(samples, 0.90) == 4.0

    def test_single_sample(self):
        assert quantile([0.7], 0.9) == 0.7

    def test_empty(self):
        assert quantile([], 0.5) == 0.0

    def test_out_of_range_q_is_clamped(self):
        assert quantile([1.0, 2.0], 2.0) == 2.0
        assert quantile([1.0, 2.0], -1.0) == 1.0


class TestRunMonteCarlo:
    def test_single_repeat_is_plain_run(self):
        scenario = _scenario(noise={"seed": 3})
        result = run_monte_carlo(scenario, repeats=1)
        assert result.bands is None
        assert result.series == simulate(scenario, seed=3).series

    def test_repeats_default_from_noise_block(self):
        result = run_monte_carlo(_scenario(noise={"repeats": 4}))
        assert result.repeats == 4
        assert len(result.bands["S"].p50) == 15

    def test_no_noise_block_means_one_run(self):
        result = run_monte_carlo(_scenario())
        assert result.repeats == 1
        assert result.base_seed == 1

    def test_bands_are_ordered(self):
        result = run_monte_carlo(_scenario(noise={"sigmaE": 5, "sigmaA": 3, "repeats": 7}), metrics=("S", "dose"))
        for band in result.bands.values():
            for lo, mid, hi in zip(band.p10, band.p50, band.p90):
                assert lo <= mid <= hi

    def test_noise_spreads_bands(self):
        result = run_monte_carlo(_scenario(noise={"sigmaE": 10, "sigmaA": 5, "repeats": 9}), metrics="dose")
        band = result.bands["dose"]
        assert band.p90[-1] > band.p10[-1]

    def test_representative_series_is_first_seed(self):
        scenario = _scenario(noise={"seed": 20, "repeats": 3})
        result = run_monte_carlo(scenario)
        assert result.series == simulate(scenario, seed=20).series

    def test_bands_match_manual_runs(self):
        scenario = _scenario(noise={"seed": 5, "repeats": 5})
        result = run_monte_carlo(scenario)
        runs = [simulate(scenario, seed=5 + i) for i in range(5)]
        assert result.bands["S"] == percentile_bands(runs, "S")

    def test_thread_pool_matches_sequential(self):
        scenario = _scenario(noise={"sigmaE": 4, "repeats": 6})
        assert run_monte_carlo(scenario, max_workers=4) == run_monte_carlo(scenario)

    def test_explicit_repeats_override(self):
        assert run_monte_carlo(_scenario(noise={"repeats": 8}), repeats=2).repeats == 2

    def test_zero_repeats_rejected(self):
        with pytest.raises(DomainError):
            run_monte_carlo(_scenario(), repeats=0)

    def test_negative_days_rejected(self):
        with pytest.raises(DomainError):
            run_monte_carlo(_scenario(days=-3), repeats=2)

    def test_unknown_metric_rejected(self):
        with pytest.raises(DomainError):
            run_monte_carlo(_scenario(), repeats=2, metrics=("nope",))

    def test_optional_metric_band_skips_missing(self):
        result = run_monte_carlo(_scenario(noise={"repeats": 3}), metrics=("influence",))
        assert result.bands["influence"].p50 == [0.0] * 15

    def test_zero_days(self):
        result = run_monte_carlo(_scenario(days=0, noise={"repeats": 3}))
        assert result.series == []
        assert result.bands["S"].p50 == []
