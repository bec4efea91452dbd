"""Map Workbench Module Entry Point

Command-line runner that loads a small demonstration dataset into the engine,
runs an attribute query and a buffer analysis, and prints the summaries. The
shapely capability and the in-memory render surface stand in for a map client.
"""

import argparse
import asyncio
import sys
from typing import Optional

from src.config import ConfigLoader
from src.exceptions import WorkbenchBaseException
from src.utils import get_logger, setup_logging
from .analysis import AnalysisKind
from .capabilities import InMemoryRenderSurface, ShapelyGeometryCapability
from .drawing import DrawTarget, ToolKind
from .engine import MapWorkbenchEngine
from .models import Dataset, Feature, FieldDefinition, FieldType, Geometry, GeometryKind


def build_demo_dataset() -> Dataset:
    """Parks dataset with a handful of rectangular polygons in Web Mercator metres."""
    parks = [
        ("1", "Riverside Park", 12.5, "Council"),
        ("2", "Hilltop Reserve", 48.0, "Trust"),
        ("3", "Park Lane Green", 3.2, "Council"),
        ("4", "Harbour View", 7.9, "Private"),
    ]
    features = []
    for index, (fid, name, hectares, owner) in enumerate(parks):
        x = index * 500.0
        features.append(Feature(
            id=fid,
            geometry=Geometry.polygon([(x, 0), (x + 300, 0), (x + 300, 300), (x, 300)]),
            attributes={"OBJECTID": int(fid), "NAME": name, "HECTARES": hectares, "OWNER": owner}
        ))
    return Dataset(
        id="parks",
        title="Parks",
        geometry_kind=GeometryKind.POLYGON,
        fields=[
            FieldDefinition(name="OBJECTID", field_type=FieldType.NUMBER),
            FieldDefinition(name="NAME", field_type=FieldType.STRING, alias="Park name"),
            FieldDefinition(name="HECTARES", field_type=FieldType.NUMBER),
            FieldDefinition(name="OWNER", field_type=FieldType.STRING),
        ],
        features=features
    )


async def run_demo(engine: MapWorkbenchEngine, buffer_distance: float, export_path: Optional[str]) -> None:
    engine.register_dataset(build_demo_dataset())

    grouped = await engine.run_query("*", [
        {"field": "NAME", "operator": "contains", "value": "park", "combinator": "OR"},
        {"field": "HECTARES", "operator": "greaterThan", "value": 40},
    ])
    print(f"Query: {grouped.get_summary()}")
    for group in grouped.ranked_groups():
        names = ", ".join(str(f.attributes.get("NAME")) for f in group.features)
        print(f"  {group.key}: {group.count} ({names})")

    if export_path:
        print(f"Exported query results to {grouped.export_csv(export_path)}")

    engine.arm_draw_tool(ToolKind.POINT, target=DrawTarget.BUFFER)
    engine.add_vertex((150.0, 150.0))
    request = engine.build_analysis_request(
        AnalysisKind.BUFFER, {"distance": buffer_distance, "unit": "meters"}
    )
    analysis = await engine.run_analysis(request)
    print(f"Buffer: {analysis.get_summary()}")

    measured = await engine.run_analysis(engine.build_analysis_request(AnalysisKind.AREA, source_dataset_id="parks"))
    print(f"Area: {measured.get_summary()}")


def main(args: Optional[list] = None) -> int:
    """Main entry point for the map workbench module.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Map Workbench - Interactive spatial query and analysis engine demo"
    )
    parser.add_argument(
        "--environment",
        choices=["development", "production"],
        default=None,
        help="Environment to run against (default: WORKBENCH_ENVIRONMENT or development)"
    )
    parser.add_argument(
        "--config-dir",
        default="config",
        help="Directory containing workbench_config.json (default: config)"
    )
    parser.add_argument(
        "--buffer-distance",
        type=float,
        default=250.0,
        help="Buffer distance in metres for the demo analysis (default: 250)"
    )
    parser.add_argument(
        "--export",
        default=None,
        help="Optional CSV path for the query results"
    )

    parsed_args = parser.parse_args(args)

    loader = ConfigLoader(parsed_args.config_dir)
    environment = parsed_args.environment or loader.get_environment()

    try:
        config = loader.get_engine_config(environment)
        logging_config = loader.get_logging_config(environment)
    except WorkbenchBaseException as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        environment=environment,
        log_level=logging_config.get("level", "INFO"),
        log_dir=logging_config.get("log_dir")
    )
    logger = get_logger(__name__)
    logger.info(f"Starting map workbench demo ({environment})")

    engine = MapWorkbenchEngine(ShapelyGeometryCapability(), InMemoryRenderSurface(), config)
    try:
        asyncio.run(run_demo(engine, parsed_args.buffer_distance, parsed_args.export))
    except WorkbenchBaseException as e:
        logger.error(f"Demo failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
