import numpy as np
import pytest

from frustum_fusion.camera_model import PinholeCameraModel
from frustum_fusion.frustum_filter import extract_all_frustums, extract_frustum_points
from frustum_fusion.messages import CameraInfo, Header

from conftest import K, P, make_detection


def test_project_principal_point(camera_model):
    assert camera_model.project_3d_to_pixel((0.0, 0.0, 5.0)) == pytest.approx((320.0, 240.0))
    assert camera_model.project_3d_to_pixel((1.0, -1.0, 10.0)) == pytest.approx((370.0, 190.0))


def test_project_zero_depth_is_nan(camera_model):
    uv = camera_model.project_points(np.array([[1.0, 1.0, 0.0]]))
    assert np.all(np.isnan(uv))


def test_camera_model_properties(camera_model):
    assert camera_model.tf_frame == 'camera'
    assert (camera_model.fx, camera_model.fy) == (500.0, 500.0)
    assert (camera_model.cx, camera_model.cy) == (320.0, 240.0)


def test_uncalibrated_camera_projects_nothing():
    info = CameraInfo(header=Header('camera'), width=640, height=480, K=K, P=np.zeros((3, 4)))
    model = PinholeCameraModel.from_camera_info(info)
    points = np.array([[0.0, 0.0, 5.0], [1.0, -1.0, 10.0]])

    assert np.all(np.isnan(model.project_points(points)))
    subset, indices = extract_frustum_points(points, make_detection(320, 240, 640, 480), model)
    assert len(subset) == 0
    assert len(indices) == 0


def test_point_inside_box_is_included(camera_model):
    points = np.array([
        [0.0, 0.0, 5.0],     # principal point
        [0.2, 0.1, 5.0],     # (340, 250)
        [3.0, 0.0, 5.0],     # (620, 240) outside
    ])
    detection = make_detection(320, 240, 100, 100)

    subset, indices = extract_frustum_points(points, detection, camera_model)

    assert indices.tolist() == [0, 1]
    assert np.allclose(subset, points[:2])


def test_points_behind_camera_always_excluded(camera_model):
    # Projects onto the principal point as well, but z <= 0
    points = np.array([[0.0, 0.0, -5.0], [0.1, 0.1, -2.0], [0.0, 0.0, 0.0]])
    detection = make_detection(320, 240, 640, 480)

    subset, indices = extract_frustum_points(points, detection, camera_model)

    assert len(subset) == 0
    assert len(indices) == 0


def test_box_edges_are_closed(camera_model):
    # u = 320 + 500 * x / 5 -> x = 0.5 lands exactly on u = 370
    points = np.array([[0.5, 0.0, 5.0], [0.0, 0.5, 5.0]])
    detection = make_detection(320, 240, 100, 100)

    _, indices = extract_frustum_points(points, detection, camera_model)

    assert indices.tolist() == [0, 1]


def test_non_positive_u_excluded(camera_model):
    # u = 320 + 20 * x with z = 25
    points = np.array([
        [-16.5, 0.0, 25.0],  # u = -10
        [-16.0, 0.0, 25.0],  # u = 0
        [-15.5, 0.0, 25.0],  # u = 10
    ])
    detection = make_detection(0, 240, 100, 100)

    _, indices = extract_frustum_points(points, detection, camera_model)

    assert indices.tolist() == [2]


def test_empty_input(camera_model):
    subset, indices = extract_frustum_points(np.zeros((0, 3)), make_detection(320, 240, 10, 10), camera_model)

    assert subset.shape == (0, 3)
    assert indices.shape == (0,)


def test_extract_all_matches_single(camera_model):
    rng = np.random.default_rng(1)
    points = rng.uniform([-5, -5, -2], [5, 5, 20], size=(500, 3))
    detections = [make_detection(320, 240, 200, 200), make_detection(100, 100, 50, 80)]

    subsets = extract_all_frustums(points, detections, camera_model)

    assert len(subsets) == 2
    for detection, (subset, indices) in zip(detections, subsets):
        expected_points, expected_indices = extract_frustum_points(points, detection, camera_model)
        assert np.array_equal(indices, expected_indices)
        assert np.allclose(subset, expected_points)
