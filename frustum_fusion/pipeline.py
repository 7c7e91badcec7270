"""
Frustum fusion pipeline: camera info + point cloud + 2D detections -> 3D boxes.

Pipeline per invocation:
    Cloud -> camera frame -> per-detection frustum -> back to cloud frame
    -> nearest Euclidean cluster -> bearing-aligned box
    -> Detection3DArray + combined debug cloud (+ markers in callback())
"""

import logging
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .bbox_fitter import BearingBoxFitter
from .camera_model import PinholeCameraModel
from .cloud_transformer import transform_cloud, transform_points
from .clustering import ClusterSelector
from .config import TOPIC_CONFIG
from .frustum_filter import extract_all_frustums
from .marker_builder import build_markers
from .messages import (
    CameraInfo, Detection2D, Detection2DArray, Detection3D,
    Detection3DArray, Header, MarkerArray, PointCloud,
)
from .transforms import TransformBuffer

logger = logging.getLogger(__name__)


@dataclass
class FusionOutput:
    """Everything one synchronized callback publishes."""
    detections3d: Detection3DArray
    detection_cloud: PointCloud
    markers: MarkerArray


class FusionPipeline:
    """
    Fuse 2D detections with a co-registered point cloud.

    State injected at construction (transform provider, clustering and
    box fitting components) is the only state shared across invocations.

    Attributes:
        tf_buffer: Transform provider
        cluster_selector: Nearest-cluster selector
        bbox_fitter: Bearing-aligned box fitter
        workers: Threads used to process detections of one frame
    """

    def __init__(
        self,
        tf_buffer: TransformBuffer,
        cluster_selector: ClusterSelector = None,
        bbox_fitter: BearingBoxFitter = None,
        cluster_tolerance: float = None,
        min_cluster_size: int = None,
        max_cluster_size: int = None,
        workers: int = 1,
    ):
        self.tf_buffer = tf_buffer
        self.cluster_selector = cluster_selector or ClusterSelector(
            cluster_tolerance=cluster_tolerance,
            min_cluster_size=min_cluster_size,
            max_cluster_size=max_cluster_size,
        )
        self.bbox_fitter = bbox_fitter or BearingBoxFitter()
        self.workers = max(1, int(workers))
        self._sinks: Dict[str, List[Callable]] = {}

    # -------------------------------------------------------------------------
    # Sinks
    # -------------------------------------------------------------------------

    def add_sink(self, topic: str, sink: Callable):
        """Register a callable receiving every message published on topic."""
        self._sinks.setdefault(topic, []).append(sink)

    def _publish(self, topic: str, msg):
        for sink in self._sinks.get(topic, []):
            sink(msg)

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    def callback(
        self,
        camera_info: CameraInfo,
        cloud: PointCloud,
        detections2d: Detection2DArray,
    ) -> FusionOutput:
        """Synchronized callback: process one aligned triple and publish."""
        camera_model = PinholeCameraModel.from_camera_info(camera_info)

        detections3d, detection_cloud = self.process(camera_model, cloud, detections2d)
        markers = build_markers(detections3d)

        self._publish(TOPIC_CONFIG['detection3d_topic'], detections3d)
        self._publish(TOPIC_CONFIG['detection_cloud_topic'], detection_cloud)
        self._publish(TOPIC_CONFIG['marker_topic'], markers)

        return FusionOutput(detections3d, detection_cloud, markers)

    def process(
        self,
        camera_model: PinholeCameraModel,
        cloud: PointCloud,
        detections2d: Union[Detection2DArray, Sequence[Detection2D]],
    ) -> Tuple[Detection3DArray, PointCloud]:
        """
        Run the fusion for one synchronized input.

        Args:
            camera_model: Pinhole model, rebuilt for this invocation
            cloud: Raw cloud in its sensor frame
            detections2d: 2D detections (array message or plain list)

        Returns:
            (detections3d, detection_cloud), both stamped with cloud.header
        """
        if isinstance(detections2d, Detection2DArray):
            detections = detections2d.detections
        else:
            detections = list(detections2d)

        header = Header(frame_id=cloud.header.frame_id, stamp=cloud.header.stamp)
        detections3d = Detection3DArray(header=header)

        camera_cloud = transform_cloud(cloud, camera_model.tf_frame, self.tf_buffer)
        if camera_cloud.empty or len(detections) == 0:
            return detections3d, PointCloud(header)

        frustums = extract_all_frustums(camera_cloud.points, detections, camera_model)

        def run(i: int):
            return self._process_detection(
                frustums[i][0], detections[i], camera_model.tf_frame, header
            )

        if self.workers > 1 and len(detections) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                outcomes = list(executor.map(run, range(len(detections))))
        else:
            outcomes = [run(i) for i in range(len(detections))]

        cluster_clouds = []
        for outcome in outcomes:
            if outcome is None:
                continue
            detection3d, cluster_points = outcome
            detections3d.detections.append(detection3d)
            cluster_clouds.append(cluster_points)

        if cluster_clouds:
            combined = np.vstack(cluster_clouds)
        else:
            combined = np.zeros((0, 3))

        logger.debug(
            "Frame %.6f: %d/%d detections fused, %d debug points",
            header.stamp, len(detections3d), len(detections), len(combined),
        )
        return detections3d, PointCloud(header, combined)

    def _process_detection(
        self,
        frustum_points: np.ndarray,
        detection: Detection2D,
        camera_frame: str,
        header: Header,
    ) -> Optional[Tuple[Detection3D, np.ndarray]]:
        """Frustum subset -> cloud frame -> nearest cluster -> box."""
        if len(frustum_points) == 0:
            return None

        cloud_points = transform_points(frustum_points, camera_frame, header, self.tf_buffer)
        if len(cloud_points) == 0:
            return None

        cluster = self.cluster_selector.select(cloud_points)
        if not cluster.found:
            return None

        bbox = self.bbox_fitter.fit(cluster.points)
        return Detection3D(bbox=bbox, results=list(detection.results)), cluster.points
