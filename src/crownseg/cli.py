import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

def setup_logging(level: int = logging.INFO) -> None:
    """
    Configures the standard logging format and level for the command-line interface.

    Args:
        level (int): The logging threshold level.
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def run_segmentation(
    input_path: str,
    output_path: str,
    config: Optional[str] = None,
    crowns: Optional[str] = None,
    crs: Optional[str] = None,
    field: str = "treeID",
    max_iterations: Optional[int] = None
    ) -> int:
    """
    Segments the trees of a LAS/LAZ file and writes the labelled copy, plus an optional crown layer.

    Args:
        input_path (str): Height-normalized LAS/LAZ file.
        output_path (str): Destination of the labelled copy.
        config (Optional[str]): YAML parameter file. Defaults apply when omitted.
        crowns (Optional[str]): Destination of the crown polygons (any GDAL vector format).
        crs (Optional[str]): CRS attached to the crown polygons.
        field (str): Name of the per-point label dimension.
        max_iterations (Optional[int]): Cap on the loop; the partial result is kept when reached.

    Returns:
        int: Number of segmented trees.
    """
    from crownseg.config import load_params
    from crownseg.lidar import PointCloud, SegmentationParams, segment_trees

    params = load_params(config) if config else SegmentationParams()
    if max_iterations is not None:
        params.max_iterations = max_iterations
        params.early_stop = True

    cloud = PointCloud.from_file(input_path)

    def report(iteration: int, remaining: int, total: int) -> None:
        if iteration % 500 == 0:
            logging.info(f"Iteration {iteration}: {total - remaining}/{total} working-set points processed")

    result = segment_trees(cloud, params, progress=report)
    PointCloud.write_labels(input_path, output_path, result.tree_ids, field=field)

    if crowns:
        from crownseg.vector import CrownLayer, save_crowns
        save_crowns(CrownLayer.from_result(result, crs=crs), crowns)

    logging.info(f"{result.n_trees} trees written to {output_path}")
    return result.n_trees

def main(argv: Optional[List[str]] = None) -> None:
    """
    Parses command-line arguments and routes execution to the appropriate subroutines.
    """
    parser = argparse.ArgumentParser(
        prog="crownseg",
        description="Individual tree segmentation of airborne LiDAR point clouds"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    seg_parser = subparsers.add_parser(
        "segment",
        help="Assigns a tree ID to every point of a height-normalized LAS/LAZ file."
    )
    seg_parser.add_argument("input", type=str, help="Height-normalized LAS/LAZ file.")
    seg_parser.add_argument("output", type=str, help="Output LAS/LAZ file with the tree ID dimension.")
    seg_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file of segmentation parameters. Defaults are used when omitted."
    )
    seg_parser.add_argument(
        "--crowns",
        type=str,
        default=None,
        help="Optional output vector file (e.g. .gpkg) for the crown polygons."
    )
    seg_parser.add_argument(
        "--crs",
        type=str,
        default=None,
        help="Coordinate reference system of the crown polygons, e.g. EPSG:32619."
    )
    seg_parser.add_argument(
        "--field",
        type=str,
        default="treeID",
        help="Name of the tree ID dimension. Defaults to treeID."
    )
    seg_parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Stops early after this many iterations and keeps the partial result."
    )
    seg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enables debug logging."
    )

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "segment":
        for path in (args.input, args.config):
            if path and not Path(path).exists():
                logging.error(f"File not found: {path}")
                sys.exit(1)
        try:
            run_segmentation(
                input_path=args.input,
                output_path=args.output,
                config=args.config,
                crowns=args.crowns,
                crs=args.crs,
                field=args.field,
                max_iterations=args.max_iterations
            )
        except Exception as e:
            logging.error(f"Segmentation failed: {e}")
            sys.exit(1)

if __name__ == "__main__":
    main()
