"""
Move point clouds between frames using the transform buffer.

Lookup failures are not errors here: the affected stage yields an empty
result and the reason is logged as a warning.
"""

import logging
import numpy as np

from .messages import Header, PointCloud
from .transforms import TransformBuffer

logger = logging.getLogger(__name__)


def transform_cloud(
    cloud: PointCloud,
    target_frame: str,
    tf_buffer: TransformBuffer,
) -> PointCloud:
    """
    Transform a cloud into target_frame at the cloud's own stamp.

    Args:
        cloud: Input cloud (not modified)
        target_frame: Frame to express the points in
        tf_buffer: Transform provider

    Returns:
        New PointCloud in target_frame; empty if the lookup failed
    """
    header = Header(frame_id=target_frame, stamp=cloud.header.stamp)

    result = tf_buffer.lookup_transform(target_frame, cloud.header.frame_id, cloud.header.stamp)
    if not result.ok:
        logger.warning(result.error)
        return PointCloud(header)

    return PointCloud(header, result.transform.apply(cloud.points))


def transform_points(
    points: np.ndarray,
    source_frame: str,
    header: Header,
    tf_buffer: TransformBuffer,
) -> np.ndarray:
    """
    Transform (N, 3) points from source_frame into header.frame_id.

    The lookup is done at header.stamp. Returns an empty (0, 3) array
    if the lookup failed.
    """
    result = tf_buffer.lookup_transform(header.frame_id, source_frame, header.stamp)
    if not result.ok:
        logger.warning(result.error)
        return np.zeros((0, 3))

    return result.transform.apply(points)
