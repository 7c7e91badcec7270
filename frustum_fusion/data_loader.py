"""
Data loader for recorded fusion inputs.

Recording layout:
    <data_root>/camera_info.json      camera calibration (CameraInfo)
    <data_root>/transforms.json       static and timed transforms
    <data_root>/frames/<name>/
        meta.json                     {"frame_id": ..., "stamp": ...}
        cloud.npy | cloud.bin         (N, >=3) points, .bin is float32
        detections.json               {"detections": [...]}
"""

import json
import logging
import numpy as np
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import get_paths
from .messages import (
    BoundingBox2D, CameraInfo, Detection2D, Detection2DArray,
    Header, ObjectHypothesis, PointCloud, Pose,
)
from .transforms import RigidTransform, TransformStamped

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in {path}: {e}")


def parse_camera_info(data: Dict, stamp: float = 0.0) -> CameraInfo:
    """Build a CameraInfo from its JSON dict."""
    try:
        return CameraInfo(
            header=Header(frame_id=data['frame_id'], stamp=stamp),
            width=int(data.get('width', 0)),
            height=int(data.get('height', 0)),
            K=data['K'],
            P=data['P'],
            D=data.get('D', [0.0] * 5),
            R=data.get('R', np.eye(3).ravel().tolist()),
            distortion_model=data.get('distortion_model', 'plumb_bob'),
        )
    except KeyError as e:
        raise ValueError(f"camera_info is missing field {e}")


def parse_transform(data: Dict, static: bool) -> TransformStamped:
    """Build a TransformStamped from {"parent", "child", "translation", "rotation"}."""
    try:
        transform = RigidTransform.from_xyzw(
            data.get('translation', [0.0, 0.0, 0.0]),
            data.get('rotation', [0.0, 0.0, 0.0, 1.0]),
        )
        stamp = 0.0 if static else float(data['stamp'])
        return TransformStamped(
            header=Header(frame_id=data['parent'], stamp=stamp),
            child_frame_id=data['child'],
            transform=transform,
        )
    except KeyError as e:
        raise ValueError(f"transform entry is missing field {e}")


def _parse_pose(data: Optional[Dict]) -> Optional[Pose]:
    if not data:
        return None
    return Pose(
        position=np.asarray(data.get('position', [0.0, 0.0, 0.0]), dtype=np.float64),
        orientation=tuple(data.get('orientation', (0.0, 0.0, 0.0, 1.0))),
    )


def parse_detections(data: Dict, header: Header) -> Detection2DArray:
    """Build a Detection2DArray from its JSON dict."""
    detections = []
    for det in data.get('detections', []):
        bbox = det.get('bbox', {})
        if not all(k in bbox for k in ('center_x', 'center_y', 'size_x', 'size_y')):
            raise ValueError(f"detection bbox needs center_x, center_y, size_x, size_y: {bbox}")
        results = [
            ObjectHypothesis(
                class_id=str(r.get('class_id', '')),
                score=float(r.get('score', 0.0)),
                pose=_parse_pose(r.get('pose')),
            )
            for r in det.get('results', [])
        ]
        detections.append(Detection2D(
            bbox=BoundingBox2D(
                center_x=float(bbox['center_x']),
                center_y=float(bbox['center_y']),
                size_x=float(bbox['size_x']),
                size_y=float(bbox['size_y']),
            ),
            results=results,
        ))
    return Detection2DArray(header=header, detections=detections)


class FusionLoader:
    """
    Loader for a recording of synchronized fusion inputs.

    Attributes:
        data_root: Recording directory
        frame_names: Sorted frame directory names
    """

    def __init__(self, data_root: Optional[str] = None):
        paths = get_paths(data_root=data_root)
        self.data_root = paths['data_root']
        self._camera_info_path = paths['camera_info']
        self._transforms_path = paths['transforms']
        self._frames_dir = paths['frames_dir']

        if not self._camera_info_path.exists():
            raise FileNotFoundError(f"camera_info not found: {self._camera_info_path}")
        if not self._frames_dir.is_dir():
            raise FileNotFoundError(f"frames directory not found: {self._frames_dir}")

        self._camera_info = _read_json(self._camera_info_path)
        self.frame_names = sorted(p.name for p in self._frames_dir.iterdir() if p.is_dir())

        logger.info("Loaded recording %s with %d frames", self.data_root, len(self.frame_names))

    def __len__(self) -> int:
        return len(self.frame_names)

    def load_transforms(self) -> Tuple[List[TransformStamped], List[TransformStamped]]:
        """
        Load transforms.

        Returns:
            (static, dynamic) lists, dynamic sorted by stamp
        """
        if not self._transforms_path.exists():
            logger.warning("No transforms file at %s", self._transforms_path)
            return [], []

        data = _read_json(self._transforms_path)
        static = [parse_transform(t, static=True) for t in data.get('static', [])]
        dynamic = [parse_transform(t, static=False) for t in data.get('dynamic', [])]
        dynamic.sort(key=lambda t: t.header.stamp)
        return static, dynamic

    def load_meta(self, name: str) -> Dict:
        meta_path = self._frames_dir / name / 'meta.json'
        if not meta_path.exists():
            raise FileNotFoundError(f"Frame metadata not found: {meta_path}")
        meta = _read_json(meta_path)
        if 'frame_id' not in meta or 'stamp' not in meta:
            raise ValueError(f"{meta_path} needs 'frame_id' and 'stamp'")
        return meta

    def load_cloud(self, name: str) -> PointCloud:
        """
        Load the point cloud of a frame.

        Returns:
            PointCloud with (N, 3) points
        """
        meta = self.load_meta(name)
        frame_dir = self._frames_dir / name
        header = Header(frame_id=meta['frame_id'], stamp=float(meta['stamp']))

        npy_path = frame_dir / 'cloud.npy'
        if npy_path.exists():
            points = np.load(npy_path)
            if points.size == 0:
                return PointCloud(header)
            return PointCloud(header, points.reshape(len(points), -1)[:, :3])

        bin_path = frame_dir / 'cloud.bin'
        if bin_path.exists():
            dims = int(meta.get('point_dims', 4))
            points = np.fromfile(str(bin_path), dtype=np.float32).reshape(-1, dims)
            return PointCloud(header, points[:, :3])

        raise FileNotFoundError(f"No cloud.npy or cloud.bin in {frame_dir}")

    def load_detections(self, name: str) -> Detection2DArray:
        meta = self.load_meta(name)
        det_path = self._frames_dir / name / 'detections.json'
        header = Header(frame_id=self._camera_info.get('frame_id', ''), stamp=float(meta['stamp']))
        if not det_path.exists():
            return Detection2DArray(header=header)
        return parse_detections(_read_json(det_path), header)

    def load_camera_info(self, name: str) -> CameraInfo:
        meta = self.load_meta(name)
        return parse_camera_info(self._camera_info, stamp=float(meta['stamp']))


def load_frame_data(loader: FusionLoader, idx: int) -> Dict[str, Any]:
    """
    Convenience function to load all inputs of a frame.

    Returns:
        Dict with name, camera_info, cloud, detections
    """
    name = loader.frame_names[idx]
    return {
        'name': name,
        'camera_info': loader.load_camera_info(name),
        'cloud': loader.load_cloud(name),
        'detections': loader.load_detections(name),
    }
