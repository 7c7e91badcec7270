"""
Output formatter for fused detections.

Converts pipeline outputs to JSON (detections + markers) and saves the
debug clouds as .npy files.
"""

import json
import logging
import numpy as np
from pathlib import Path
from typing import Any, Dict, Optional
from datetime import datetime

from .bbox_fitter import quaternion_to_yaw
from .config import get_paths
from .messages import Detection3D
from .pipeline import FusionOutput

logger = logging.getLogger(__name__)


def _json_float(value: float) -> Optional[float]:
    """JSON has no NaN / inf; store them as null."""
    value = float(value)
    return value if np.isfinite(value) else None


def format_detection(detection: Detection3D) -> Dict[str, Any]:
    """Format a single 3D detection."""
    bbox = detection.bbox
    orientation = tuple(bbox.center.orientation)
    return {
        'center': [_json_float(v) for v in bbox.center.position],
        'size': [_json_float(v) for v in bbox.size],
        'orientation': [_json_float(v) for v in orientation],
        'yaw': _json_float(quaternion_to_yaw(orientation)),
        'finite': bbox.is_finite(),
        'results': [r.to_dict() for r in detection.results],
    }


class DetectionFormatter:
    """Formats and saves fusion results per frame."""

    def __init__(self, output_dir: Optional[Path] = None):
        if output_dir is not None:
            self.output_dir = Path(output_dir)
        else:
            self.output_dir = get_paths()['output_dir']
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def format_frame(self, output: FusionOutput) -> Dict[str, Any]:
        """Format all outputs of one callback."""
        return {
            'header': output.detections3d.header.to_dict(),
            'detections': [format_detection(d) for d in output.detections3d.detections],
            'markers': [m.to_dict() for m in output.markers.markers],
            'n_debug_points': len(output.detection_cloud),
        }

    def save_json(
        self,
        all_outputs: Dict[str, FusionOutput],
        output_name: Optional[str] = None,
    ) -> str:
        """Save formatted results of all frames to one JSON file."""
        if output_name is None:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            output_name = f'fusion_results_{timestamp}'

        results = {name: self.format_frame(out) for name, out in all_outputs.items()}
        output_path = self.output_dir / f'{output_name}.json'

        with open(output_path, 'w') as f:
            json.dump({'results': results}, f, indent=2)

        logger.info("Saved results to %s", output_path)
        return str(output_path)

    def save_clouds(
        self,
        all_outputs: Dict[str, FusionOutput],
        output_name: str,
    ) -> str:
        """Save every frame's debug cloud as <output_name>_clouds/<frame>.npy."""
        cloud_dir = self.output_dir / f'{output_name}_clouds'
        cloud_dir.mkdir(parents=True, exist_ok=True)
        for name, out in all_outputs.items():
            np.save(cloud_dir / f'{name}.npy', out.detection_cloud.points)
        return str(cloud_dir)


def format_results(
    all_outputs: Dict[str, FusionOutput],
    output_dir: Optional[Path] = None,
    output_name: Optional[str] = None,
    save_json: bool = True,
    save_clouds: bool = True,
) -> Dict[str, str]:
    """Convenience function to format and save results."""
    formatter = DetectionFormatter(output_dir=output_dir)
    if output_name is None:
        output_name = f"fusion_results_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    output_paths = {}
    if save_json:
        output_paths['json'] = formatter.save_json(all_outputs, output_name)
    if save_clouds:
        output_paths['clouds'] = formatter.save_clouds(all_outputs, output_name)
    return output_paths
