from pathlib import Path

import pytest

from frustum_fusion.config import get_params, get_paths


def test_defaults(monkeypatch):
    for name in ('FUSION_CLUSTER_TOLERANCE', 'FUSION_MIN_CLUSTER_SIZE',
                 'FUSION_MAX_CLUSTER_SIZE', 'FUSION_CACHE_TIME'):
        monkeypatch.delenv(name, raising=False)

    params = get_params()

    assert params['cluster_tolerance'] == 0.5
    assert params['min_cluster_size'] == 100
    assert params['max_cluster_size'] == 25000
    assert params['cache_time'] == 2.0
    assert params['lidar_topic'] == 'points_raw'
    assert params['detection3d_topic'] == 'detection3d_result'


def test_env_overrides_default_and_arg_overrides_env(monkeypatch):
    monkeypatch.setenv('FUSION_MIN_CLUSTER_SIZE', '20')
    monkeypatch.setenv('FUSION_CLUSTER_TOLERANCE', '0.25')

    params = get_params(cluster_tolerance=0.8, max_cluster_size=None)

    assert params['min_cluster_size'] == 20
    assert params['cluster_tolerance'] == 0.8
    assert params['max_cluster_size'] == 25000


def test_bad_env_value(monkeypatch):
    monkeypatch.setenv('FUSION_MAX_CLUSTER_SIZE', 'lots')
    with pytest.raises(ValueError):
        get_params()


def test_unknown_override():
    with pytest.raises(KeyError):
        get_params(cluster_radius=1.0)


def test_paths(monkeypatch, tmp_path):
    monkeypatch.setenv('FUSION_DATA_ROOT', str(tmp_path / 'rec'))
    monkeypatch.delenv('FUSION_OUTPUT', raising=False)

    paths = get_paths()
    assert paths['data_root'] == tmp_path / 'rec'
    assert paths['frames_dir'] == tmp_path / 'rec' / 'frames'

    explicit = get_paths(data_root='other', output_dir='out')
    assert explicit['data_root'] == Path('other')
    assert explicit['output_dir'] == Path('out')
