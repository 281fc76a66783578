"""
PURPOSE: Tests for per-scenario trial simulation.

Tests verify:
- Repair modifiers on frost, carbonation and bearing series
- Event detection and first-event years
- Accumulator merging does not depend on chunk order or chunk size
- Degenerate inputs (zero trials, unknown scenario, missing edge factor)
"""

import math
import unittest

import numpy as np

from deck_life.deterioration import carbonation_depth
from deck_life.distributions import RandomVariate
from deck_life.parameters import DEFAULT_PARAMETERS
from deck_life.scenarios import (
    SCENARIOS,
    RepairKind,
    ScenarioAccumulator,
    ScenarioSimulator,
    edge_factor,
    get_scenario,
    scenario_calibration_target,
    simulation_years,
)


def single_trial(scenario_id, k=1.88, cover=20.0, frost_rate=0.2, bearing_rate=0.1, parameters=DEFAULT_PARAMETERS):
    simulator = ScenarioSimulator(parameters, scenario_id)
    accumulator = simulator.evaluate_trials([k], [cover], [frost_rate], [bearing_rate])
    return simulator, accumulator


def year_index(year):
    return year - DEFAULT_PARAMETERS.start_year


class TestScenarioDefinitions(unittest.TestCase):

    def test_scenarios(self):
        self.assertEqual(list(SCENARIOS), ["A", "B", "C", "D"])
        self.assertIs(get_scenario("A").repair, RepairKind.NONE)
        self.assertIs(get_scenario("B").repair, RepairKind.LIGHT)
        self.assertIs(get_scenario("C").repair, RepairKind.FULL)
        self.assertIs(get_scenario("D").repair, RepairKind.FULL)

    def test_unknown_scenario(self):
        with self.assertRaises(ValueError):
            get_scenario("E")
        with self.assertRaises(ValueError):
            ScenarioSimulator(DEFAULT_PARAMETERS, "Z")

    def test_simulation_years(self):
        years = simulation_years(DEFAULT_PARAMETERS)
        self.assertEqual(len(years), 153)
        self.assertEqual(years[0], 1974)
        self.assertEqual(years[-1], 2126)

    def test_edge_factor_fallback(self):
        self.assertEqual(edge_factor(DEFAULT_PARAMETERS), 1.5)
        self.assertEqual(edge_factor(DEFAULT_PARAMETERS.with_overrides({"bearing": {"edge_factor": 2.0}})), 2.0)
        self.assertEqual(edge_factor(DEFAULT_PARAMETERS.with_overrides({"bearing": {"edge_factor": 0.0}})), 1.5)
        self.assertEqual(edge_factor(DEFAULT_PARAMETERS.with_overrides({"bearing": {"edge_factor": math.nan}})), 1.5)

    def test_calibration_target_uses_rib_cover(self):
        target = scenario_calibration_target(DEFAULT_PARAMETERS)
        self.assertEqual(target.k_mean, 1.88)
        self.assertEqual(target.cover_mean, 20.0)
        self.assertEqual(target.cover_std, 5.5)
        self.assertEqual(target.surface_rebar_fraction, 0.02)
        self.assertEqual(target.observation_age, 50)

    def test_repair_year(self):
        self.assertEqual(ScenarioSimulator(DEFAULT_PARAMETERS, "A").repair_year, math.inf)
        self.assertEqual(ScenarioSimulator(DEFAULT_PARAMETERS, "B").repair_year, 2026)


class TestRepairModifiers(unittest.TestCase):

    def test_passive_bearing_and_frost(self):
        _, acc = single_trial("A")
        end = year_index(2126)
        self.assertAlmostEqual(acc.bearing[0, end], 100.0 - 1.5 * 0.1 * 151)
        self.assertAlmostEqual(acc.frost[0, end], 0.2 * 151)
        self.assertEqual(acc.frost[0, year_index(1975)], 0.0)

    def test_bearing_ordering_by_repair(self):
        """Same trial: passive < light < full repair; C and D identical."""
        end = year_index(2126)
        bearing = {sid: single_trial(sid)[1].bearing[0, end] for sid in SCENARIOS}
        self.assertLess(bearing["A"], bearing["B"])
        self.assertLess(bearing["B"], bearing["C"])
        self.assertEqual(bearing["C"], bearing["D"])
        self.assertAlmostEqual(bearing["B"], 100.0 - 1.5 * 0.1 * 51 - 1.5 * 0.05 * 100)

    def test_frost_after_repair(self):
        repair, after = year_index(2026), year_index(2027)
        _, light = single_trial("B")
        _, full = single_trial("C")
        self.assertAlmostEqual(light.frost[0, repair], 0.2 * 51)
        self.assertAlmostEqual(light.frost[0, after], 0.2 * 51 + 0.1)
        self.assertAlmostEqual(full.frost[0, year_index(2126)], 0.2 * 51 + 0.01 * 100)

    def test_full_repair_frost_is_linear_after_repair(self):
        parameters = DEFAULT_PARAMETERS.with_overrides({"frost": {"acceleration_factor": 1.03}})
        _, acc = single_trial("C", parameters=parameters)
        increments = np.diff(acc.frost[0, year_index(2027):])
        np.testing.assert_array_almost_equal(increments, np.full(increments.shape, 0.2 * 0.05))

    def test_light_repair_pauses_carbonation(self):
        _, light = single_trial("B")
        depth_at_repair = carbonation_depth(1.88, 2026 - 1974, 30, 0.2)
        for year in range(2026, 2032):
            self.assertAlmostEqual(light.carbonation[0, year_index(year)], depth_at_repair)
        self.assertAlmostEqual(light.carbonation[0, year_index(2032)], carbonation_depth(1.88, 53, 30, 0.2))

    def test_full_repair_carbonation_continuous_and_slower(self):
        _, passive = single_trial("A")
        _, full = single_trial("C")
        repair, after = year_index(2026), year_index(2027)
        self.assertAlmostEqual(full.carbonation[0, repair], passive.carbonation[0, repair])
        step_full = full.carbonation[0, after] - full.carbonation[0, repair]
        step_passive = passive.carbonation[0, after] - passive.carbonation[0, repair]
        self.assertGreater(step_full, 0.0)
        self.assertLess(step_full, step_passive)
        self.assertTrue(np.all(np.diff(full.carbonation[0]) >= -1e-9))

    def test_before_repair_matches_passive(self):
        _, passive = single_trial("A")
        repair = year_index(2026)
        for scenario_id in ("B", "C", "D"):
            _, acc = single_trial(scenario_id)
            np.testing.assert_array_almost_equal(acc.carbonation[0, : repair + 1], passive.carbonation[0, : repair + 1])
            np.testing.assert_array_almost_equal(acc.frost[0, : repair + 1], passive.frost[0, : repair + 1])
            np.testing.assert_array_almost_equal(acc.bearing[0, : repair + 1], passive.bearing[0, : repair + 1])


class TestEvents(unittest.TestCase):

    def test_surface_rebar_corrodes_immediately(self):
        _, acc = single_trial("A", cover=0.0)
        self.assertEqual(acc.corrosion_years.tolist(), [1974.0])
        _, acc = single_trial("A", cover=-3.0)
        self.assertEqual(acc.corrosion_years.tolist(), [1974.0])

    def test_first_event_years(self):
        _, acc = single_trial("A", frost_rate=0.25, bearing_rate=0.5)
        # 100 - 1.5 * 0.5 * t < 75  ->  t > 33.3
        self.assertEqual(acc.collapse_years.tolist(), [1975.0 + 34])
        # 0.25 * t > 30  ->  t > 120
        self.assertEqual(acc.critical_frost_years.tolist(), [1975.0 + 121])

    def test_no_events(self):
        _, acc = single_trial("C", cover=500.0, frost_rate=0.01, bearing_rate=0.01)
        self.assertEqual(acc.corrosion_years.size, 0)
        self.assertEqual(acc.collapse_years.size, 0)
        self.assertEqual(acc.critical_frost_years.size, 0)
        self.assertEqual(acc.corrosion_counts.sum(), 0)


def crossing_years(accumulator, years, critical_min):
    """First year each trial's bearing falls below the limit, inf when it never does."""
    below = accumulator.bearing < critical_min
    return np.where(below.any(axis=1), years[below.argmax(axis=1)], np.inf)


class TestCrossScenarioOrdering(unittest.TestCase):
    """Repairs never bring the bearing-threshold crossing forward for the same sampled rates."""

    @classmethod
    def setUpClass(cls):
        rv = RandomVariate(random_seed=21)
        n = 500
        cls.n = n
        cls.trials = (
            [1.88] * n,
            [20.0] * n,
            [rv.lognormal(0.2, 0.45) for _ in range(n)],
            [rv.lognormal(0.2, 0.25) for _ in range(n)],
        )
        cls.simulators = {sid: ScenarioSimulator(DEFAULT_PARAMETERS, sid) for sid in SCENARIOS}
        cls.accumulators = {sid: sim.evaluate_trials(*cls.trials) for sid, sim in cls.simulators.items()}
        critical = DEFAULT_PARAMETERS.bearing.critical_min_mm
        cls.crossings = {
            sid: crossing_years(acc, cls.simulators[sid].years, critical)
            for sid, acc in cls.accumulators.items()
        }

    def test_per_trial_crossing_not_earlier(self):
        passive = self.crossings["A"]
        self.assertTrue(np.isfinite(np.sort(passive)[self.n // 2]))
        for scenario_id in ("B", "C", "D"):
            self.assertTrue(np.all(self.crossings[scenario_id] >= passive), scenario_id)

    def test_median_crossing_year_not_earlier(self):
        """Nearest-rank median over all trials, never-crossing trials counted as inf."""
        passive_median = np.sort(self.crossings["A"])[self.n // 2]
        for scenario_id in ("B", "C", "D"):
            repaired_median = np.sort(self.crossings[scenario_id])[self.n // 2]
            self.assertGreaterEqual(repaired_median, passive_median, scenario_id)

    def test_collapse_counts_not_higher(self):
        passive = self.accumulators["A"].collapse_counts
        for scenario_id in ("B", "C", "D"):
            self.assertTrue(np.all(self.accumulators[scenario_id].collapse_counts <= passive), scenario_id)
            self.assertLessEqual(
                self.accumulators[scenario_id].collapse_years.size, self.accumulators["A"].collapse_years.size
            )


class TestAccumulator(unittest.TestCase):

    def setUp(self):
        self.simulator = ScenarioSimulator(DEFAULT_PARAMETERS, "B")
        self.first = self.simulator.evaluate_trials([1.5, 2.5], [0.0, 25.0], [0.1, 0.4], [0.05, 0.3])
        self.second = self.simulator.evaluate_trials([1.9], [18.0], [0.25], [0.2])

    def test_merge_is_order_independent(self):
        ab = self.simulator.aggregate(self.first.merge(self.second))
        ba = self.simulator.aggregate(self.second.merge(self.first))
        self.assertEqual(ab.to_dict(), ba.to_dict())

    def test_merge_with_empty(self):
        empty = ScenarioAccumulator.empty(len(self.simulator.years))
        merged = empty.merge(self.first)
        self.assertEqual(merged.num_trials, 2)
        np.testing.assert_array_equal(merged.corrosion_counts, self.first.corrosion_counts)

    def test_zero_trials(self):
        result = self.simulator.aggregate(ScenarioAccumulator.empty(len(self.simulator.years)))
        self.assertEqual(len(result.stats), 153)
        self.assertTrue(math.isnan(result.stats[0].corrosion_probability))
        self.assertEqual(result.distributions.collapse_year.n, 0)
        self.assertEqual(result.distributions.collapse_year_histogram.counts, [])


class TestScenarioRun(unittest.TestCase):

    def setUp(self):
        self.parameters = DEFAULT_PARAMETERS.with_overrides({"monte_carlo_iterations": 60})

    def test_run(self):
        result = ScenarioSimulator(self.parameters, "B", RandomVariate(random_seed=3), chunk_size=16).run()
        self.assertEqual(result.scenario_id, "B")
        self.assertEqual(result.name, "Light repair")
        self.assertEqual(len(result.stats), 153)
        self.assertIsNotNone(result.calibration)

        corrosion = [s.corrosion_probability for s in result.stats]
        collapse = [s.collapse_probability for s in result.stats]
        self.assertTrue(all(0.0 <= p <= 1.0 for p in corrosion + collapse))
        self.assertTrue(np.all(np.diff(corrosion) >= 0))
        self.assertTrue(np.all(np.diff(collapse) >= 0))
        self.assertTrue(all(s.bearing.n == 60 for s in result.stats))

    def test_chunk_size_does_not_change_result(self):
        small = ScenarioSimulator(self.parameters, "A", RandomVariate(random_seed=8), chunk_size=7).run()
        large = ScenarioSimulator(self.parameters, "A", RandomVariate(random_seed=8), chunk_size=1000).run()
        self.assertEqual(small.to_dict(), large.to_dict())

    def test_explicit_zero_trials(self):
        result = ScenarioSimulator(self.parameters, "A", RandomVariate(random_seed=1)).run(num_trials=0)
        self.assertTrue(math.isnan(result.stats[-1].collapse_probability))
        self.assertEqual(result.distributions.corrosion_year.n, 0)


if __name__ == "__main__":
    unittest.main()
