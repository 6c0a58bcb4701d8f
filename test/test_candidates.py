"""
Tests unitaires pour la génération des candidats.
"""

import pytest
import numpy as np
from docking_station_detector.candidates import (
    CandidateGenerator,
    spatial_extent
)
from docking_station_detector.exceptions import ConfigurationError, InvalidScanError
from docking_station_detector.pose import Pose2D


@pytest.fixture
def generator(template):
    return CandidateGenerator(template, max_range=10.0)


def _wall(x, y_min, y_max, count):
    ys = np.linspace(y_min, y_max, count)
    return np.column_stack((np.full(count, x), ys))


def _sample(outline, spacing):
    """Échantillonne une polyligne à pas régulier, extrémités incluses."""
    chunks = []
    for a, b in zip(outline[:-1], outline[1:]):
        n = max(1, int(np.ceil(np.linalg.norm(b - a) / spacing)))
        t = np.linspace(0.0, 1.0, n + 1)[:-1]
        chunks.append(a + t[:, None] * (b - a))
    chunks.append(outline[-1:])
    return np.vstack(chunks)


class TestFiltering:
    """Points sans écho et scans vides."""

    def test_empty_scan(self, generator):
        assert generator.generate(np.empty((0, 2))) == []

    def test_all_max_range(self, generator):
        """360 mesures à portée max -> aucun candidat."""
        angles = np.linspace(-np.pi, np.pi, 360, endpoint=False)
        points = 10.0 * np.column_stack((np.cos(angles), np.sin(angles)))
        assert generator.generate(points) == []

    def test_sensor_range_below_configured(self, generator):
        """Portée annoncée par le scan plus courte que max_range."""
        angles = np.linspace(-np.pi, np.pi, 360, endpoint=False)
        points = 5.6 * np.column_stack((np.cos(angles), np.sin(angles)))
        assert generator.generate(points)
        assert generator.generate(points, max_range=5.6) == []

    def test_non_finite_points_ignored(self, generator, template, place):
        points = place(template.feature_points(0.01), Pose2D(1.5, 0.0, 0.0))
        noisy = np.vstack((points, [[np.nan, 1.0], [np.inf, 0.0]]))
        candidates = generator.generate(noisy)
        assert len(candidates) == 1
        assert candidates[0].size == len(points)

    def test_bad_shape(self, generator):
        with pytest.raises(InvalidScanError):
            generator.generate(np.ones((4, 3)))

    def test_bad_indices(self, generator):
        with pytest.raises(InvalidScanError):
            generator.generate(np.ones((4, 2)), indices=np.arange(3))


class TestClustering:
    """Regroupement et rejet par étendue."""

    def test_single_fixture(self, generator, template, place):
        points = place(template.feature_points(0.01), Pose2D(1.5, 0.0, 0.0))
        candidates = generator.generate(points)

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.index == 0
        assert candidate.start == 0
        assert candidate.stop == len(points)
        assert np.array_equal(candidate.points, points)

    def test_original_indices_kept(self, generator, template, place):
        points = place(template.feature_points(0.01), Pose2D(1.5, 0.0, 0.0))
        indices = np.arange(len(points)) + 100
        candidate = generator.generate(points, indices)[0]
        assert candidate.start == 100
        assert candidate.stop == 100 + len(points)

    def test_gap_splits_clusters(self, generator, template, place):
        left = place(template.feature_points(0.01), Pose2D(1.5, -1.0, 0.0))
        right = place(template.feature_points(0.01), Pose2D(1.5, 1.0, 0.0))
        candidates = generator.generate(np.vstack((left, right)))

        assert [c.cluster_id for c in candidates] == [0, 1]
        assert [c.index for c in candidates] == [0, 1]
        assert candidates[1].start == len(left)

    def test_too_few_points(self, generator):
        points = _wall(1.0, 0.0, 0.3, 4)
        assert generator.generate(points) == []

    def test_too_small_extent(self, generator):
        points = _wall(1.0, 0.0, 0.05, 10)
        assert generator.generate(points) == []

    def test_long_wall_sliding_windows(self, generator):
        """Un cluster trop grand est parcouru par fenêtres glissantes."""
        points = _wall(2.0, -1.5, 1.5, 151)
        candidates = generator.generate(points)

        assert len(candidates) > 1
        starts = [c.start for c in candidates]
        assert starts == sorted(starts)
        for c in candidates:
            assert c.size >= generator.min_points
            assert spatial_extent(c.points) <= generator.max_extent
            assert spatial_extent(c.points) <= generator.window_extent + 1e-12
            assert c.cluster_id == 0
        assert candidates[-1].stop == len(points)

    def test_station_between_wall_stubs(self, generator, template, place):
        """Cluster plausible mais plus grand que le V : cluster entier puis fenêtres."""
        half = template.width / 2.0
        outline = np.array([[0.0, -half - 0.1], [0.0, -half], [template.depth, 0.0],
                            [0.0, half], [0.0, half + 0.1]])
        points = place(_sample(outline, 0.01), Pose2D(1.5, 0.0, 0.0))
        candidates = generator.generate(points)

        assert len(candidates) > 1
        assert (candidates[0].start, candidates[0].stop) == (0, len(points))
        for c in candidates[1:]:
            assert spatial_extent(c.points) <= template.span + 1e-12
        # Une fenêtre couvre le V sans les murs, à deux points près
        near_v = [c for c in candidates[1:]
                  if c.start >= 8 and c.stop <= len(points) - 8]
        assert near_v

    def test_max_candidates(self, template):
        generator = CandidateGenerator(template, max_range=10.0, max_candidates=5)
        candidates = generator.generate(_wall(2.0, -1.5, 1.5, 151))
        assert [c.index for c in candidates] == [0, 1, 2, 3, 4]

    def test_deterministic(self, generator):
        points = _wall(2.0, -1.5, 1.5, 151)
        first = generator.generate(points)
        second = generator.generate(points)
        assert first == second
        assert all(np.array_equal(a.points, b.points) for a, b in zip(first, second))


class TestGeneratorConfiguration:
    """Paramètres invalides."""

    @pytest.mark.parametrize('kwargs', [
        {'max_range': 0.0},
        {'cluster_gap': -0.1},
        {'min_points': 2},
        {'extent_tolerance': -0.5},
        {'window_stride': 0},
        {'max_candidates': 0},
    ])
    def test_invalid_parameters(self, template, kwargs):
        params = {'max_range': 10.0}
        params.update(kwargs)
        with pytest.raises(ConfigurationError):
            CandidateGenerator(template, **params)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
