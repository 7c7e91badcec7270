"""
Configuration for frustum_fusion.

Self-contained configuration with no external dependencies.
Parameters and paths are configurable via environment variables or
function arguments.

Priority everywhere: explicit arg > env var > default below.
"""

import os
from pathlib import Path
from typing import Optional


# =============================================================================
# PATH CONFIGURATION
# =============================================================================

def get_project_root() -> Path:
    """Get project root, defaults to one level up from this package."""
    return Path(os.environ.get(
        'FUSION_PROJECT_ROOT',
        str(Path(__file__).parent.parent)
    ))


def get_paths(
    data_root: Optional[str] = None,
    output_dir: Optional[str] = None,
) -> dict:
    """
    Get all paths with env-var fallbacks.

    Args:
        data_root: Path to a recording directory
        output_dir: Path to output directory

    Returns:
        Dict with keys: data_root, output_dir, camera_info,
                        transforms, frames_dir
    """
    project_root = get_project_root()

    if data_root:
        dr = Path(data_root)
    elif os.environ.get('FUSION_DATA_ROOT'):
        dr = Path(os.environ['FUSION_DATA_ROOT'])
    else:
        dr = project_root / 'data' / 'recording'

    od = Path(output_dir or os.environ.get(
        'FUSION_OUTPUT', str(project_root / 'output')
    ))

    return {
        'data_root': dr,
        'output_dir': od,
        'camera_info': dr / 'camera_info.json',
        'transforms': dr / 'transforms.json',
        'frames_dir': dr / 'frames',
    }


# =============================================================================
# TOPICS
# =============================================================================

TOPIC_CONFIG = {
    'camera_info_topic': 'camera_info',
    'lidar_topic': 'points_raw',
    'detection2d_topic': 'detection2d_result',
    'detection3d_topic': 'detection3d_result',
    'detection_cloud_topic': 'detection_cloud',
    'marker_topic': 'detection_marker',
}

# =============================================================================
# EUCLIDEAN CLUSTERING
# =============================================================================

CLUSTER_CONFIG = {
    'cluster_tolerance': 0.5,
    'min_cluster_size': 100,
    'max_cluster_size': 25000,
}

# =============================================================================
# TRANSFORM BUFFER
# =============================================================================

TRANSFORM_CONFIG = {
    'cache_time': 2.0,
    # Replay: timed transforms up to this far past a frame are fed before it
    'replay_lookahead': 0.5,
}

# =============================================================================
# SYNCHRONIZER
# =============================================================================

SYNC_QUEUE_SIZE = 10

# =============================================================================
# MARKERS (display only)
# =============================================================================

MARKER_CONFIG = {
    'ns': 'detection',
    'color': (0.0, 1.0, 0.0, 0.5),
    'lifetime': 0.5,
}


_ENV_PARAMS = {
    'cluster_tolerance': ('FUSION_CLUSTER_TOLERANCE', float),
    'min_cluster_size': ('FUSION_MIN_CLUSTER_SIZE', int),
    'max_cluster_size': ('FUSION_MAX_CLUSTER_SIZE', int),
    'cache_time': ('FUSION_CACHE_TIME', float),
}


def get_params(**overrides) -> dict:
    """
    Get tunable pipeline parameters with env-var fallbacks.

    Args:
        **overrides: Explicit values; None entries are ignored

    Returns:
        Dict with cluster_tolerance, min_cluster_size, max_cluster_size,
        cache_time and the topic names

    Raises:
        ValueError: If an environment variable cannot be parsed
        KeyError: If an override names an unknown parameter
    """
    params = dict(CLUSTER_CONFIG)
    params.update(TRANSFORM_CONFIG)
    params.update(TOPIC_CONFIG)

    for key, (env_name, cast) in _ENV_PARAMS.items():
        raw = os.environ.get(env_name)
        if raw is not None and raw != '':
            try:
                params[key] = cast(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}")

    for key, value in overrides.items():
        if key not in params:
            raise KeyError(f"Unknown parameter: {key}")
        if value is not None:
            params[key] = value

    return params
