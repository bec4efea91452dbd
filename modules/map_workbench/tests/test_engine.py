"""Tests for MapWorkbenchEngine and the command line runner."""

import asyncio
import logging
from pathlib import Path

import pytest
from unittest.mock import AsyncMock

from src.config import EngineConfig
from modules.map_workbench import ALL_DATASETS, EngineEvent, MapWorkbenchEngine
from modules.map_workbench.analysis import AnalysisKind, AnalysisRequest
from modules.map_workbench.capabilities import InMemoryRenderSurface, ShapelyGeometryCapability
from modules.map_workbench.drawing import DrawState, DrawTarget, ToolKind
from modules.map_workbench.exceptions import (
    AnalysisError, CapabilityError, DatasetNotFoundError, InsufficientFeaturesError,
    QueryValidationError
)
from modules.map_workbench.models import Geometry
from modules.map_workbench.main import main

REPO_ROOT = Path(__file__).resolve().parents[3]

PARK_CRITERIA = [{"field": "NAME", "operator": "contains", "value": "park"}]


class SlowBufferCapability(ShapelyGeometryCapability):
    """Shapely capability whose buffer calls take the given delays in turn."""

    def __init__(self, delays):
        super().__init__()
        self.delays = list(delays)

    async def buffer(self, geometry, distance, unit):
        await asyncio.sleep(self.delays.pop(0))
        return await super().buffer(geometry, distance, unit)


class SlowRenderSurface(InMemoryRenderSurface):
    """Render surface that yields to the event loop on every highlight."""

    async def add_highlight(self, geometry, style):
        await asyncio.sleep(0.01)
        return await super().add_highlight(geometry, style)


@pytest.fixture
def surface():
    return InMemoryRenderSurface()


@pytest.fixture
def engine(surface, parks_dataset, trees_dataset):
    engine = MapWorkbenchEngine(ShapelyGeometryCapability(), surface)
    engine.register_dataset(parks_dataset)
    engine.register_dataset(trees_dataset)
    return engine


class TestQueries:
    """Test query execution through the engine."""

    def test_query_single_dataset(self, engine, surface):
        """Test matches are grouped, highlighted and zoomed to."""
        grouped = asyncio.run(engine.run_query("parks", PARK_CRITERIA))

        assert [f.id for f in grouped.get_group("parks").features] == ["1", "3"]
        assert len(surface.highlights) == 2
        assert surface.current_extent == grouped.zoom_target
        assert engine.last_query_result is grouped

    def test_query_all_datasets(self, engine):
        """Test an all-dataset query groups matches per dataset."""
        grouped = asyncio.run(engine.run_query(ALL_DATASETS, PARK_CRITERIA))

        assert [(g.key, g.count) for g in grouped.groups] == [("parks", 2), ("trees", 1)]
        assert grouped.skipped_datasets == []

    def test_query_all_datasets_skips_incompatible(self, engine):
        """Test datasets lacking a queried field are skipped and reported."""
        grouped = asyncio.run(engine.run_query(ALL_DATASETS, [
            {"field": "NAME", "operator": "contains", "value": "park", "combinator": "OR"},
            {"field": "HECTARES", "operator": "greaterThan", "value": 40},
        ]))

        assert [f.id for f in grouped.get_group("parks").features] == ["1", "2", "3"]
        assert grouped.get_group("trees") is None
        assert grouped.skipped_datasets == ["trees"]

    def test_query_all_datasets_none_compatible(self, engine, surface):
        """Test the first validation error is raised when no dataset can answer."""
        with pytest.raises(QueryValidationError) as exc_info:
            asyncio.run(engine.run_query(ALL_DATASETS, [
                {"field": "MISSING", "operator": "equals", "value": 1}
            ]))

        assert "MISSING" in exc_info.value.message
        assert surface.highlights == {}

    def test_unknown_dataset(self, engine):
        with pytest.raises(DatasetNotFoundError):
            asyncio.run(engine.run_query("rivers", PARK_CRITERIA))

    def test_empty_query(self, engine):
        with pytest.raises(QueryValidationError) as exc_info:
            engine.build_query([])

        assert exc_info.value.message == "Query group is empty"

    def test_malformed_query(self, engine):
        """Test malformed criteria surface every validation message."""
        with pytest.raises(QueryValidationError) as exc_info:
            engine.build_query([{"field": "NAME", "value": "x"}])

        assert exc_info.value.validation_errors
        assert "operator" in exc_info.value.validation_errors[0]

    def test_compile_query(self, engine):
        predicates = engine.compile_query(ALL_DATASETS, PARK_CRITERIA)

        assert [p.dataset_id for p in predicates] == ["parks", "trees"]

    def test_second_query_replaces_highlights(self, engine, surface):
        """Test only the latest query's matches stay highlighted."""
        asyncio.run(engine.run_query("parks", PARK_CRITERIA))
        grouped = asyncio.run(engine.run_query("parks", [
            {"field": "OWNER", "operator": "equals", "value": "Trust"}
        ]))

        assert grouped.total_count == 1
        assert len(surface.highlights) == 1

    def test_superseded_query_discarded(self, parks_dataset):
        """Test a query overtaken by a newer one returns None."""
        surface = SlowRenderSurface()
        engine = MapWorkbenchEngine(ShapelyGeometryCapability(), surface)
        engine.register_dataset(parks_dataset)

        async def run_both():
            return await asyncio.gather(
                engine.run_query("parks", PARK_CRITERIA),
                engine.run_query("parks", [{"field": "OWNER", "operator": "equals", "value": "Trust"}]),
            )

        first, second = asyncio.run(run_both())

        assert first is None
        assert second.total_count == 1
        assert len(surface.highlights) == 1
        assert engine.last_query_result is second

    def test_unique_values_capped(self, surface, parks_dataset):
        """Test suggestions are capped by the configured maximum."""
        engine = MapWorkbenchEngine(ShapelyGeometryCapability(), surface,
                                    EngineConfig(query={"max_unique_values": 2}))
        engine.register_dataset(parks_dataset)

        assert engine.unique_values("parks", "NAME") == ["Harbour View", "Hilltop Reserve"]
        assert engine.unique_values("parks", "NAME", limit=1) == ["Harbour View"]
        assert engine.unique_values("parks", "OWNER", limit=50) == ["Council", "Trust"]


class TestDrawingAndAnalysis:
    """Test drawing analysis inputs and running analysis through the engine."""

    def test_pointer_clicks_drive_drawing(self, engine, surface):
        """Test render surface clicks become vertices of the armed tool."""
        engine.arm_draw_tool(ToolKind.POLYGON, target=DrawTarget.INTERSECT_A)
        for x, y in [(0, 0), (10, 0), (10, 10)]:
            surface.click(x, y)
        engine.finish_draw()

        engine.arm_draw_tool(ToolKind.RECTANGLE, target=DrawTarget.INTERSECT_B)
        surface.click(0, 0)
        surface.click(10, 10)

        slots = engine.draw_manager.slots
        assert slots.intersect_a.tool_kind == ToolKind.POLYGON
        assert slots.intersect_b.tool_kind == ToolKind.RECTANGLE
        assert len(engine.drawings) == 2

    def test_cancel_draw(self, engine, surface):
        """Test cancelling discards the vertices placed so far."""
        engine.arm_draw_tool(ToolKind.LINE)
        surface.click(0, 0)

        engine.cancel_draw()
        surface.click(5, 5)

        assert engine.draw_manager.state == DrawState.CANCELLED
        assert engine.drawings == []

    def test_click_without_tool_ignored(self, engine, surface):
        surface.click(5, 5)

        assert engine.drawings == []

    def test_intersect_drawn_inputs(self, engine, surface):
        """Test intersect reads the set A and set B drawings."""
        engine.arm_draw_tool(ToolKind.POLYGON, target=DrawTarget.INTERSECT_A)
        for vertex in [(0, 0), (10, 0), (10, 10)]:
            engine.add_vertex(vertex)
        engine.finish_draw()
        engine.arm_draw_tool(ToolKind.RECTANGLE, target=DrawTarget.INTERSECT_B)
        engine.add_vertex((0, 0))
        engine.add_vertex((10, 10))

        request = engine.build_analysis_request(AnalysisKind.INTERSECT)
        grouped = asyncio.run(engine.run_analysis(request))

        assert len(request.source_features) == 1
        assert len(request.secondary_features) == 1
        assert grouped.get_group("Intersection").count == 1
        assert grouped.display_value == "50.00 m²"
        assert len(surface.highlights) == 1

    def test_buffer_drawn_points(self, engine, surface):
        engine.arm_draw_tool(ToolKind.POINT, target=DrawTarget.BUFFER)
        engine.add_vertex((0, 0))
        engine.arm_draw_tool(ToolKind.POINT, target=DrawTarget.BUFFER)
        engine.add_vertex((1000, 0))

        grouped = asyncio.run(engine.run_analysis(engine.build_analysis_request(
            AnalysisKind.BUFFER, {"distance": 1.5, "unit": "kilometers"}
        )))

        assert grouped.get_group("Buffer").count == 2
        assert grouped.display_value == "1.50 km"
        assert len(surface.highlights) == 2

    def test_distance_between_drawings(self, engine):
        engine.arm_draw_tool(ToolKind.POINT)
        engine.add_vertex((0, 0))
        engine.arm_draw_tool(ToolKind.POINT)
        engine.add_vertex((300, 400))

        grouped = asyncio.run(engine.run_analysis(engine.build_analysis_request(AnalysisKind.DISTANCE)))

        assert grouped.display_value == "500.00 m"
        assert grouped.groups[0].features[0].attributes["type"] == "Distance Measurement"

    def test_area_of_dataset(self, engine):
        """Test analysis can read its inputs from a registered dataset."""
        grouped = asyncio.run(engine.run_analysis(
            engine.build_analysis_request(AnalysisKind.AREA, source_dataset_id="parks")
        ))

        assert grouped.get_group("Area").count == 4
        assert grouped.display_value == "4.00 ha"

    def test_precondition_failure_leaves_surface_untouched(self, engine, surface):
        engine.arm_draw_tool(ToolKind.POINT)
        engine.add_vertex((0, 0))

        with pytest.raises(InsufficientFeaturesError):
            asyncio.run(engine.run_analysis(engine.build_analysis_request(AnalysisKind.DISTANCE)))

        assert surface.highlights == {}
        assert engine.last_analysis_result is None

    def test_query_and_analysis_highlights_coexist(self, engine, surface):
        """Test an analysis does not clear the search highlights."""
        asyncio.run(engine.run_query("parks", PARK_CRITERIA))
        asyncio.run(engine.run_analysis(
            engine.build_analysis_request(AnalysisKind.AREA, source_dataset_id="parks")
        ))

        assert len(surface.highlights) == 6

    def test_superseded_analysis_discarded(self, surface):
        """Test a slow analysis overtaken by a newer one returns None."""
        engine = MapWorkbenchEngine(SlowBufferCapability([0.05, 0.0]), surface)
        engine.arm_draw_tool(ToolKind.POINT, target=DrawTarget.BUFFER)
        engine.add_vertex((0, 0))

        slow = engine.build_analysis_request(AnalysisKind.BUFFER, {"distance": 10})
        fast = engine.build_analysis_request(AnalysisKind.BUFFER, {"distance": 20})

        async def run_both():
            return await asyncio.gather(engine.run_analysis(slow), engine.run_analysis(fast))

        first, second = asyncio.run(run_both())

        assert first is None
        assert second.display_value == "20.00 m"
        assert engine.last_analysis_result is second
        assert len(surface.highlights) == 1

    def test_analysis_superseded_by_failing_analysis(self, parks_dataset):
        """Test an overtaken analysis leaves nothing on the map when the newer one aborts."""
        surface = SlowRenderSurface()
        capability = ShapelyGeometryCapability()
        capability.length = AsyncMock(side_effect=CapabilityError("length unavailable"))
        engine = MapWorkbenchEngine(capability, surface)
        engine.register_dataset(parks_dataset)

        buffers = engine.build_analysis_request(AnalysisKind.BUFFER, {"distance": 10},
                                                source_dataset_id="parks")
        distance = AnalysisRequest(kind=AnalysisKind.DISTANCE,
                                   source_features=[Geometry.point(0, 0), Geometry.point(100, 0)])

        async def overtake():
            older = asyncio.create_task(engine.run_analysis(buffers))
            await asyncio.sleep(0.025)
            with pytest.raises(AnalysisError):
                await engine.run_analysis(distance)
            return await older

        assert asyncio.run(overtake()) is None
        assert surface.highlights == {}
        assert engine.last_analysis_result is None

    def test_clear_results(self, engine, surface):
        asyncio.run(engine.run_query("parks", PARK_CRITERIA))
        asyncio.run(engine.run_analysis(
            engine.build_analysis_request(AnalysisKind.AREA, source_dataset_id="parks")
        ))

        asyncio.run(engine.clear_results())

        assert surface.highlights == {}
        assert engine.last_query_result is None
        assert engine.last_analysis_result is None


class TestEvents:
    """Test engine notifications."""

    def test_results_changed(self, engine):
        received = []
        engine.subscribe(EngineEvent.RESULTS_CHANGED, received.append)

        grouped = asyncio.run(engine.run_query("parks", PARK_CRITERIA))
        asyncio.run(engine.clear_results())

        assert received == [grouped, None]

    def test_draw_state_changed(self, engine):
        states = []
        engine.subscribe(EngineEvent.DRAW_STATE_CHANGED, lambda snapshot: states.append(snapshot.state))

        engine.arm_draw_tool(ToolKind.POINT)
        engine.add_vertex((1, 1))

        assert states == [DrawState.DRAWING, DrawState.COMPLETE]

    def test_dataset_changed(self, engine, parks_dataset):
        changes = []
        unsubscribe = engine.subscribe(EngineEvent.DATASET_CHANGED, changes.append)

        engine.unregister_dataset("trees")
        unsubscribe()
        engine.unregister_dataset("parks")

        assert [c.dataset_id for c in changes] == ["trees"]

    def test_dataset_change_invalidates_cached_query(self, engine):
        """Test cached results are dropped when a dataset they came from changes."""
        asyncio.run(engine.run_query("parks", PARK_CRITERIA))

        engine.unregister_dataset("trees")
        assert engine.last_query_result is not None

        engine.unregister_dataset("parks")
        assert engine.last_query_result is None

    def test_failing_subscriber_does_not_block_others(self, engine):
        received = []

        def broken(_):
            raise RuntimeError("subscriber bug")

        engine.subscribe(EngineEvent.DATASET_CHANGED, broken)
        engine.subscribe(EngineEvent.DATASET_CHANGED, received.append)

        engine.unregister_dataset("trees")

        assert len(received) == 1


class TestMain:
    """Test the command line runner."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        """main() reconfigures the root logger; put it back afterwards."""
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_demo_runs(self, tmp_path, capsys):
        export_path = tmp_path / "results.csv"

        exit_code = main([
            "--environment", "development",
            "--config-dir", str(REPO_ROOT / "config"),
            "--export", str(export_path),
        ])

        assert exit_code == 0
        assert export_path.exists()
        output = capsys.readouterr().out
        assert "Query:" in output
        assert "Buffer:" in output

    def test_missing_config(self, tmp_path):
        assert main(["--config-dir", str(tmp_path)]) == 1
