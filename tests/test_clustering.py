import numpy as np
import pytest

from frustum_fusion.clustering import ClusterSelector, EuclideanClusterExtractor

from conftest import make_cube


def test_extract_separates_distant_blobs():
    points = np.vstack([make_cube((0, 0, 0), n=3), make_cube((5, 0, 0), n=4)])
    extractor = EuclideanClusterExtractor(cluster_tolerance=0.6, min_cluster_size=2, max_cluster_size=1000)

    clusters = extractor.extract(points)

    assert [len(c) for c in clusters] == [64, 27]
    assert set(clusters[1].tolist()) == set(range(27))


def test_extract_respects_size_bounds():
    points = np.vstack([
        make_cube((0, 0, 0), n=2),      # 8 points
        make_cube((5, 0, 0), n=3),      # 27 points
        make_cube((10, 0, 0), n=4),     # 64 points
    ])
    extractor = EuclideanClusterExtractor(cluster_tolerance=1.1, min_cluster_size=10, max_cluster_size=30)

    clusters = extractor.extract(points)

    assert [len(c) for c in clusters] == [27]


def test_extract_ignores_non_finite_points():
    points = np.vstack([make_cube((0, 0, 0), n=3), [[np.nan, 0.0, 0.0]]])
    extractor = EuclideanClusterExtractor(cluster_tolerance=0.6, min_cluster_size=2, max_cluster_size=100)

    clusters = extractor.extract(points)

    assert len(clusters) == 1
    assert 27 not in clusters[0]


def test_invalid_parameters():
    with pytest.raises(ValueError):
        EuclideanClusterExtractor(cluster_tolerance=0.0)
    with pytest.raises(ValueError):
        EuclideanClusterExtractor(min_cluster_size=50, max_cluster_size=10)


def test_defaults_from_config():
    extractor = EuclideanClusterExtractor()

    assert extractor.cluster_tolerance == 0.5
    assert extractor.min_cluster_size == 100
    assert extractor.max_cluster_size == 25000


def test_selects_nearest_centroid():
    # centroid norms 5, 2, 8
    points = np.vstack([
        make_cube((0, 5, 0), side=0.4, n=3),
        make_cube((2, 0, 0), side=0.4, n=3),
        make_cube((0, 0, 8), side=0.4, n=3),
    ])
    selector = ClusterSelector(cluster_tolerance=0.3, min_cluster_size=5, max_cluster_size=100)

    result = selector.select(points)

    assert result.found
    assert result.n_clusters == 3
    assert np.linalg.norm(result.centroid) == pytest.approx(2.0)
    assert len(result.points) == 27


def test_nearest_wins_over_larger_cluster():
    points = np.vstack([make_cube((10, 0, 0), n=5), make_cube((3, 0, 0), n=3)])
    selector = ClusterSelector(cluster_tolerance=0.6, min_cluster_size=5, max_cluster_size=1000)

    result = selector.select(points)

    assert np.allclose(result.centroid, [3.0, 0.0, 0.0])


def test_undersized_only_cluster_not_selectable():
    points = make_cube((2, 0, 0), n=2)   # 8 points
    selector = ClusterSelector(cluster_tolerance=2.0, min_cluster_size=9, max_cluster_size=100)

    result = selector.select(points)

    assert result.status == 'no_cluster'
    assert not result.found
    assert len(result.points) == 0
    assert result.n_input == 8


def test_oversized_cluster_not_selectable():
    points = make_cube((2, 0, 0), n=3)   # 27 points
    selector = ClusterSelector(cluster_tolerance=1.0, min_cluster_size=1, max_cluster_size=20)

    assert selector.select(points).status == 'no_cluster'


def test_empty_input():
    result = ClusterSelector(min_cluster_size=1).select(np.zeros((0, 3)))

    assert result.status == 'empty'
    assert result.n_input == 0
