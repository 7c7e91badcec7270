"""
Camera-frame points to per-detection frustum subsets.

A point belongs to a detection's frustum when it lies in front of the
camera (z > 0) and its projection falls inside the detection's 2D box
(closed interval) with a positive u coordinate.
"""

import numpy as np
from typing import List, Tuple

from .camera_model import PinholeCameraModel
from .messages import Detection2D


def frustum_mask(
    uv: np.ndarray,
    depths: np.ndarray,
    detection: Detection2D,
) -> np.ndarray:
    """
    Boolean membership mask for precomputed projections.

    Args:
        uv: (N, 2) pixel coordinates
        depths: (N,) camera-frame z values
        detection: 2D detection whose box is tested

    Returns:
        (N,) boolean mask
    """
    u_min, u_max, v_min, v_max = detection.bbox.bounds()
    u = uv[:, 0]
    v = uv[:, 1]

    # NaN projections compare False everywhere
    with np.errstate(invalid='ignore'):
        return (
            (depths > 0) & (u > 0) &
            (u >= u_min) & (u <= u_max) &
            (v >= v_min) & (v <= v_max)
        )


def extract_frustum_points(
    points: np.ndarray,
    detection: Detection2D,
    camera_model: PinholeCameraModel,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Extract camera-frame points that project into a detection box.

    Args:
        points: (N, 3) XYZ points in the camera frame
        detection: 2D detection
        camera_model: Pinhole model of the camera

    Returns:
        (frustum_points, point_indices): extracted points and their original indices
    """
    if len(points) == 0:
        return np.zeros((0, 3)), np.zeros(0, dtype=int)

    xyz = np.asarray(points, dtype=np.float64)[:, :3]
    uv = camera_model.project_points(xyz)
    mask = frustum_mask(uv, xyz[:, 2], detection)

    indices = np.where(mask)[0]
    return xyz[indices], indices


def extract_all_frustums(
    points: np.ndarray,
    detections: List[Detection2D],
    camera_model: PinholeCameraModel,
) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Frustum subsets for every detection, projecting the cloud only once."""
    if len(points) == 0:
        return [(np.zeros((0, 3)), np.zeros(0, dtype=int)) for _ in detections]

    xyz = np.asarray(points, dtype=np.float64)[:, :3]
    uv = camera_model.project_points(xyz)

    subsets = []
    for detection in detections:
        indices = np.where(frustum_mask(uv, xyz[:, 2], detection))[0]
        subsets.append((xyz[indices], indices))
    return subsets
