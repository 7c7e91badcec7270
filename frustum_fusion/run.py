"""
Replay a recording through the fusion pipeline.

Per frame:
1. Feed timed transforms up to the frame stamp (+ lookahead)
2. Push camera info, cloud and detections through the exact-time synchronizer
3. Synchronized callback -> 3D detections, debug cloud, markers
4. Save everything with the output formatter

Usage:
    python -m frustum_fusion --data_root /path/to/recording --verbose
"""

import time
import logging
import argparse
from datetime import datetime
from typing import Dict, Optional
from tqdm import tqdm

from .config import TRANSFORM_CONFIG, get_params, get_paths
from .data_loader import FusionLoader, load_frame_data
from .logging_utils import add_file_handler, setup_logger
from .output_formatter import format_results
from .pipeline import FusionOutput, FusionPipeline
from .synchronizer import ExactTimeSynchronizer
from .transforms import TransformBuffer

logger = logging.getLogger(__name__)


def run_batch(
    data_root: Optional[str] = None,
    output_dir: Optional[str] = None,
    cluster_tolerance: Optional[float] = None,
    min_cluster_size: Optional[int] = None,
    max_cluster_size: Optional[int] = None,
    workers: int = 1,
    save: bool = True,
    verbose: bool = False,
):
    """Run the pipeline over every frame of a recording."""
    paths = get_paths(data_root=data_root, output_dir=output_dir)
    params = get_params(
        cluster_tolerance=cluster_tolerance,
        min_cluster_size=min_cluster_size,
        max_cluster_size=max_cluster_size,
    )

    loader = FusionLoader(data_root=str(paths['data_root']))

    tf_buffer = TransformBuffer(cache_time=params['cache_time'])
    static_tfs, dynamic_tfs = loader.load_transforms()
    for tf in static_tfs:
        tf_buffer.set_transform_static(tf)

    pipeline = FusionPipeline(
        tf_buffer,
        cluster_tolerance=params['cluster_tolerance'],
        min_cluster_size=params['min_cluster_size'],
        max_cluster_size=params['max_cluster_size'],
        workers=workers,
    )

    results: Dict[str, FusionOutput] = {}
    current = {}

    def on_sync(camera_info, cloud, detections2d):
        results[current['name']] = pipeline.callback(camera_info, cloud, detections2d)

    synchronizer = ExactTimeSynchronizer(n_inputs=3)
    synchronizer.register_callback(on_sync)

    lookahead = TRANSFORM_CONFIG['replay_lookahead']
    next_tf = 0
    n_failed = 0
    start_time = time.time()

    for idx in tqdm(range(len(loader)), desc='Fusing frames', disable=not verbose):
        name = loader.frame_names[idx]
        try:
            frame = load_frame_data(loader, idx)
        except (FileNotFoundError, ValueError) as e:
            logger.error("Skipping frame %s: %s", name, e)
            n_failed += 1
            continue

        stamp = frame['cloud'].header.stamp
        while next_tf < len(dynamic_tfs) and dynamic_tfs[next_tf].header.stamp <= stamp + lookahead:
            tf_buffer.set_transform(dynamic_tfs[next_tf])
            next_tf += 1

        current['name'] = name
        try:
            synchronizer.add(0, frame['camera_info'])
            synchronizer.add(1, frame['cloud'])
            synchronizer.add(2, frame['detections'])
        except Exception:
            logger.exception("Error processing frame %s", name)
            n_failed += 1
            continue

    elapsed = time.time() - start_time

    print("\n" + "=" * 60)
    print("Fusion Complete")
    print("=" * 60)
    print(f"Total time: {elapsed:.1f}s")
    print(f"Processed frames: {len(results)} / {len(loader)} ({n_failed} failed)")
    total_dets = sum(len(out.detections3d) for out in results.values())
    total_markers = sum(len(out.markers) for out in results.values())
    print(f"Total 3D detections: {total_dets}")
    print(f"Total markers: {total_markers}")
    if len(results) > 0:
        print(f"Average detections per frame: {total_dets/len(results):.1f}")
        print(f"Average time per frame: {elapsed/len(results):.3f}s")

    output_paths = {}
    if save:
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        output_paths = format_results(
            results,
            output_dir=paths['output_dir'],
            output_name=f'fusion_{timestamp}',
        )
        print(f"\nOutput files:")
        for fmt, path in output_paths.items():
            print(f"  {fmt.upper()}: {path}")

    return results, output_paths


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Frustum fusion: 2D detections + point cloud -> 3D boxes',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Replay a recording with default clustering parameters
    python -m frustum_fusion --data_root /path/to/recording

    # Smaller objects, sparser lidar
    python -m frustum_fusion --data_root rec --cluster_tolerance 0.3 --min_cluster_size 20
        """,
    )

    parser.add_argument('--data_root', type=str, default=None, help='Path to recording')
    parser.add_argument('--output_dir', type=str, default=None, help='Path to output directory')
    parser.add_argument('--cluster_tolerance', type=float, default=None, help='Neighbour distance (m)')
    parser.add_argument('--min_cluster_size', type=int, default=None, help='Minimum points per cluster')
    parser.add_argument('--max_cluster_size', type=int, default=None, help='Maximum points per cluster')
    parser.add_argument('--workers', type=int, default=1, help='Threads per frame')
    parser.add_argument('--no_save', action='store_true', help='Do not write output files')
    parser.add_argument('--log_file', type=str, default=None, help='Also log to this file')
    parser.add_argument('--verbose', action='store_true', help='Verbose output')

    args = parser.parse_args(argv)

    root_logger = setup_logger(logging.DEBUG if args.verbose else logging.INFO)
    if args.log_file:
        add_file_handler(root_logger, args.log_file)

    print("=" * 60)
    print("Frustum Fusion Pipeline")
    print("=" * 60)
    print(f"Data root: {get_paths(data_root=args.data_root)['data_root']}")
    print("=" * 60)

    run_batch(
        data_root=args.data_root,
        output_dir=args.output_dir,
        cluster_tolerance=args.cluster_tolerance,
        min_cluster_size=args.min_cluster_size,
        max_cluster_size=args.max_cluster_size,
        workers=args.workers,
        save=not args.no_save,
        verbose=args.verbose,
    )


if __name__ == '__main__':
    main()
