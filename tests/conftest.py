import numpy as np
import pytest

from frustum_fusion.camera_model import PinholeCameraModel
from frustum_fusion.messages import (
    BoundingBox2D, CameraInfo, Detection2D, Header, ObjectHypothesis,
)
from frustum_fusion.transforms import RigidTransform, TransformBuffer, TransformStamped


# camera optical frame (z forward, x right, y down) expressed in the
# lidar frame (x forward, y left, z up)
CAMERA_IN_LIDAR = np.array([
    [0.0, 0.0, 1.0, 0.0],
    [-1.0, 0.0, 0.0, 0.0],
    [0.0, -1.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 1.0],
])

K = [[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]]
P = [[500.0, 0.0, 320.0, 0.0], [0.0, 500.0, 240.0, 0.0], [0.0, 0.0, 1.0, 0.0]]


def make_cube(center, side=1.0, n=5, yaw=0.0):
    """Grid of n^3 points filling a cube, rotated by yaw about Z."""
    ticks = np.linspace(-side / 2, side / 2, n)
    grid = np.array(np.meshgrid(ticks, ticks, ticks, indexing='ij')).reshape(3, -1).T
    cos_y, sin_y = np.cos(yaw), np.sin(yaw)
    R = np.array([[cos_y, -sin_y, 0.0], [sin_y, cos_y, 0.0], [0.0, 0.0, 1.0]])
    return grid @ R.T + np.asarray(center, dtype=np.float64)


def make_detection(cx, cy, w, h, label='car', score=0.9):
    return Detection2D(
        bbox=BoundingBox2D(center_x=cx, center_y=cy, size_x=w, size_y=h),
        results=[ObjectHypothesis(class_id=label, score=score)],
    )


@pytest.fixture
def camera_info():
    return CameraInfo(
        header=Header(frame_id='camera', stamp=10.0),
        width=640,
        height=480,
        K=K,
        P=P,
    )


@pytest.fixture
def camera_model(camera_info):
    return PinholeCameraModel.from_camera_info(camera_info)


@pytest.fixture
def tf_buffer():
    buffer = TransformBuffer(cache_time=2.0)
    buffer.set_transform_static(TransformStamped(
        header=Header(frame_id='lidar', stamp=0.0),
        child_frame_id='camera',
        transform=RigidTransform.from_matrix(CAMERA_IN_LIDAR),
    ))
    return buffer
