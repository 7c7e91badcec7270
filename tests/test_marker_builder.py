import numpy as np

from frustum_fusion.marker_builder import build_markers
from frustum_fusion.messages import (
    CUBE, ADD, BoundingBox3D, Detection3D, Detection3DArray, Header, Pose,
)


def _detection(size, position=(1.0, 2.0, 3.0)):
    return Detection3D(bbox=BoundingBox3D(
        center=Pose(position=np.array(position), orientation=(0.0, 0.0, 0.38268343, 0.92387953)),
        size=np.array(size, dtype=np.float64),
    ))


def test_non_finite_box_gets_no_marker_but_stays_in_array():
    array = Detection3DArray(header=Header('lidar', 4.0), detections=[_detection([np.nan, 1.0, 1.0])])

    markers = build_markers(array)

    assert len(markers) == 0
    assert len(array) == 1


def test_marker_fields_copied_from_box():
    array = Detection3DArray(header=Header('lidar', 4.0), detections=[_detection([2.0, 1.0, 0.5])])

    marker = build_markers(array).markers[0]

    assert marker.header.frame_id == 'lidar'
    assert marker.header.stamp == 4.0
    assert marker.ns == 'detection'
    assert marker.id == 0
    assert marker.type == CUBE
    assert marker.action == ADD
    assert np.allclose(marker.pose.position, [1.0, 2.0, 3.0])
    assert marker.pose.orientation == (0.0, 0.0, 0.38268343, 0.92387953)
    assert np.allclose(marker.scale, [2.0, 1.0, 0.5])
    assert marker.color == (0.0, 1.0, 0.0, 0.5)
    assert marker.lifetime == 0.5


def test_ids_follow_detection_index():
    array = Detection3DArray(header=Header('lidar', 0.0), detections=[
        _detection([1.0, 1.0, 1.0]),
        _detection([1.0, np.inf, 1.0]),
        _detection([0.0, 0.0, 0.0]),
    ])

    markers = build_markers(array)

    assert [m.id for m in markers.markers] == [0, 2]


def test_overrides():
    array = Detection3DArray(header=Header('lidar', 0.0), detections=[_detection([1.0, 1.0, 1.0])])

    marker = build_markers(array, ns='boxes', color=(1, 0, 0, 1), lifetime=2.0).markers[0]

    assert marker.ns == 'boxes'
    assert marker.color == (1, 0, 0, 1)
    assert marker.lifetime == 2.0


def test_empty_array():
    assert len(build_markers(Detection3DArray(header=Header()))) == 0


def test_empty_namespace_override_kept():
    array = Detection3DArray(header=Header('lidar', 0.0), detections=[_detection([1.0, 1.0, 1.0])])

    assert build_markers(array, ns='').markers[0].ns == ''
