"""
frustum_fusion: 3D boxes from 2D detections and a co-registered point cloud.

Pipeline:
    Cloud -> Camera Frame -> Frustum Filter -> Back to Cloud Frame
    -> Euclidean Clustering (nearest cluster) -> Bearing-Aligned BBox
    -> Detection3DArray + Debug Cloud -> Markers
"""

__version__ = '1.0.0'

from .config import (
    CLUSTER_CONFIG,
    MARKER_CONFIG,
    get_params,
    get_paths,
)
from .messages import (
    Header,
    CameraInfo,
    PointCloud,
    BoundingBox2D,
    ObjectHypothesis,
    Detection2D,
    Detection2DArray,
    Pose,
    BoundingBox3D,
    Detection3D,
    Detection3DArray,
    Marker,
    MarkerArray,
)
from .transforms import (
    RigidTransform,
    TransformStamped,
    TransformBuffer,
    LookupResult,
    TransformUnavailable,
)
from .camera_model import PinholeCameraModel
from .cloud_transformer import transform_cloud, transform_points
from .frustum_filter import extract_frustum_points, extract_all_frustums
from .clustering import EuclideanClusterExtractor, ClusterSelector, ClusterResult
from .bbox_fitter import BearingBoxFitter
from .marker_builder import build_markers
from .pipeline import FusionPipeline, FusionOutput
from .synchronizer import ExactTimeSynchronizer
from .data_loader import FusionLoader, load_frame_data
from .output_formatter import DetectionFormatter, format_results

__all__ = [
    'CLUSTER_CONFIG',
    'MARKER_CONFIG',
    'get_params',
    'get_paths',
    'Header',
    'CameraInfo',
    'PointCloud',
    'BoundingBox2D',
    'ObjectHypothesis',
    'Detection2D',
    'Detection2DArray',
    'Pose',
    'BoundingBox3D',
    'Detection3D',
    'Detection3DArray',
    'Marker',
    'MarkerArray',
    'RigidTransform',
    'TransformStamped',
    'TransformBuffer',
    'LookupResult',
    'TransformUnavailable',
    'PinholeCameraModel',
    'transform_cloud',
    'transform_points',
    'extract_frustum_points',
    'extract_all_frustums',
    'EuclideanClusterExtractor',
    'ClusterSelector',
    'ClusterResult',
    'BearingBoxFitter',
    'build_markers',
    'FusionPipeline',
    'FusionOutput',
    'ExactTimeSynchronizer',
    'FusionLoader',
    'load_frame_data',
    'DetectionFormatter',
    'format_results',
]
