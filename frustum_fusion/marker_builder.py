"""
Detection3DArray -> drawable cube markers.

Boxes with any non-finite size component get no marker; the detection
itself stays in the array.
"""

import logging
import numpy as np

from .config import MARKER_CONFIG
from .messages import CUBE, ADD, Detection3DArray, Marker, MarkerArray, Pose

logger = logging.getLogger(__name__)


def build_markers(
    detections3d: Detection3DArray,
    ns: str = None,
    color=None,
    lifetime: float = None,
) -> MarkerArray:
    """
    Build one CUBE marker per finite-size detection.

    Marker ids are the detection's index in the array, so ids of skipped
    boxes are left unused.

    Args:
        detections3d: Aggregated 3D detections
        ns: Marker namespace
        color: (r, g, b, a)
        lifetime: Display lifetime in seconds

    Returns:
        MarkerArray
    """
    ns = ns if ns is not None else MARKER_CONFIG['ns']
    color = tuple(color) if color is not None else MARKER_CONFIG['color']
    lifetime = lifetime if lifetime is not None else MARKER_CONFIG['lifetime']

    marker_array = MarkerArray()
    for i, detection in enumerate(detections3d.detections):
        bbox = detection.bbox
        if not bbox.is_finite():
            logger.debug("Skipping marker %d: non-finite size %s", i, bbox.size)
            continue

        marker_array.markers.append(Marker(
            header=detections3d.header,
            ns=ns,
            id=i,
            type=CUBE,
            action=ADD,
            pose=Pose(
                position=np.array(bbox.center.position, dtype=np.float64),
                orientation=tuple(bbox.center.orientation),
            ),
            scale=np.array(bbox.size, dtype=np.float64),
            color=color,
            lifetime=lifetime,
        ))

    return marker_array
