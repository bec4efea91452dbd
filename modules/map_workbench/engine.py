"""Map Workbench Engine

Facade tying the dataset registry, query predicate engine, draw manager, spatial
analysis orchestrator and result aggregation to one geometry capability and one
render surface.

Queries and analyses are coroutines. A new request of the same kind supersedes
any request still in flight: the older one returns None and leaves the render
surface untouched.
"""

from typing import Any, Callable, Dict, List, Optional, Union
import logging

from pydantic import ValidationError

from src.config import EngineConfig
from src.interfaces import GeometryCapability, HighlightStyle, RenderSurface
from .analysis import AnalysisKind, AnalysisRequest, AnalysisResult, SpatialAnalysisOrchestrator
from .drawing import DrawManager, DrawnFeature, DrawSessionSnapshot, DrawTarget, ToolKind
from .drawing.draw_session import VertexInput
from .events import EngineEvent, EventBus, EventCallback
from .exceptions import QueryValidationError
from .models import Dataset, Feature
from .query import Predicate, QueryGroup, QueryPredicateEngine
from .registry import DatasetChange, DatasetRegistry
from .results import DatasetMatches, GroupedResult, ResultAggregator, SearchResult

logger = logging.getLogger(__name__)

ALL_DATASETS = "*"

QueryInput = Union[QueryGroup, List[Dict[str, Any]]]


class MapWorkbenchEngine:
    """Interactive spatial query and analysis engine.

    Features:
    - Multi-criterion AND/OR attribute queries over one or all datasets
    - Interactive drawing of analysis inputs with implicit tool switching
    - Buffer, intersect, distance and area analysis via a geometry capability
    - Grouped results with atomic highlight replacement and zoom
    """

    def __init__(self, capability: GeometryCapability, render_surface: RenderSurface,
                 config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.capability = capability
        self.render_surface = render_surface

        self.events = EventBus()
        self.registry = DatasetRegistry()
        self.query_engine = QueryPredicateEngine()
        self.draw_manager = DrawManager(self.config, on_state_change=self._on_draw_state_change)
        self.orchestrator = SpatialAnalysisOrchestrator(capability, self.config)
        self.search_results = ResultAggregator(self.config)
        self.analysis_results = ResultAggregator(self.config)

        self._generations = {"query": 0, "analysis": 0}
        self._last_search: Optional[SearchResult] = None
        self._last_query_result: Optional[GroupedResult] = None
        self._last_analysis_result: Optional[GroupedResult] = None

        self.registry.subscribe(self._on_dataset_change)
        self.render_surface.on_pointer_event(self._on_pointer)
        logger.info(f"MapWorkbenchEngine initialized ({self.config.environment})")

    # Datasets

    def register_dataset(self, dataset: Dataset) -> None:
        self.registry.register(dataset)

    def unregister_dataset(self, dataset_id: str) -> Dataset:
        return self.registry.unregister(dataset_id)

    def list_datasets(self) -> List[Dataset]:
        return self.registry.list()

    # Queries

    def build_query(self, criteria: QueryInput) -> QueryGroup:
        """Build a query group from criteria dictionaries.

        Raises:
            QueryValidationError: If an entry is malformed or the group is empty
        """
        if isinstance(criteria, QueryGroup):
            group = criteria
        else:
            try:
                group = QueryGroup.from_criteria(criteria)
            except ValidationError as e:
                messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
                raise QueryValidationError(
                    f"Malformed query: {messages[0]}", validation_errors=messages
                ) from e

        if group.is_empty():
            raise QueryValidationError("Query group is empty")
        return group

    def compile_query(self, dataset_id: str, criteria: QueryInput) -> List[Predicate]:
        """Compile a query for one dataset or for every dataset (``"*"``).

        Datasets that cannot satisfy an all-dataset query are left out; when
        none can, the first validation error is raised.
        """
        predicates, _ = self._compile(dataset_id, self.build_query(criteria))
        return predicates

    async def run_query(self, dataset_id: str, criteria: QueryInput) -> Optional[GroupedResult]:
        """Run a query and replace the search highlights with its matches.

        Validation happens before any asynchronous work. Returns None when a
        newer query started before this one finished.

        Raises:
            QueryValidationError: For malformed queries
            DatasetNotFoundError: For an unknown dataset id
            CapabilityError: If the render surface fails
        """
        group = self.build_query(criteria)
        predicates, skipped = self._compile(dataset_id, group)
        generation = self._next_generation("query")

        entries = []
        for predicate in predicates:
            matches = self.query_engine.run(predicate, self.registry.get(predicate.dataset_id))
            entries.append(DatasetMatches(dataset_id=predicate.dataset_id, matched_features=matches))
        search = SearchResult(entries=entries, skipped_datasets=skipped)
        grouped = self.search_results.aggregate(search)

        logger.info(
            f"Query '{group.describe()}' matched {search.total_count} features "
            f"in {len(predicates)} datasets"
        )

        handles = await self.search_results.apply(
            grouped, self.render_surface, is_current=lambda: self._is_current("query", generation)
        )
        if handles is None or not self._is_current("query", generation):
            logger.warning(f"Query generation {generation} superseded, results discarded")
            return None

        self._last_search = search
        self._last_query_result = grouped
        self.events.emit(EngineEvent.RESULTS_CHANGED, grouped)
        return grouped

    def unique_values(self, dataset_id: str, field_name: str, limit: Optional[int] = None) -> List[Any]:
        """Distinct values of a field for building criteria."""
        cap = self.config.query.max_unique_values
        limit = cap if limit is None else min(limit, cap)
        return self.query_engine.unique_values(self.registry.get(dataset_id), field_name, limit)

    @property
    def last_query_result(self) -> Optional[GroupedResult]:
        return self._last_query_result

    # Drawing

    def arm_draw_tool(self, tool_kind: ToolKind, target: DrawTarget = DrawTarget.NONE,
                      style: Optional[HighlightStyle] = None) -> DrawSessionSnapshot:
        return self.draw_manager.arm(tool_kind, target, style)

    def add_vertex(self, point: VertexInput) -> Optional[DrawnFeature]:
        return self.draw_manager.add_vertex(point)

    def finish_draw(self) -> DrawnFeature:
        return self.draw_manager.finish()

    def cancel_draw(self) -> None:
        self.draw_manager.cancel()

    def clear_drawings(self) -> None:
        self.draw_manager.clear_drawings()

    @property
    def drawings(self) -> List[DrawnFeature]:
        return self.draw_manager.drawings

    # Analysis

    def build_analysis_request(self, kind: AnalysisKind, parameters: Optional[Dict[str, Any]] = None,
                               source_dataset_id: Optional[str] = None,
                               secondary_dataset_id: Optional[str] = None,
                               style: Optional[HighlightStyle] = None) -> AnalysisRequest:
        """Assemble a request from dataset features or from the stored drawings.

        Without dataset ids, buffer reads the buffer drawings, intersect reads
        the set A and set B drawings, and distance and area read every drawing.
        """
        kind = AnalysisKind(kind)
        slots = self.draw_manager.slots

        if source_dataset_id is not None:
            sources = self._dataset_features(source_dataset_id)
        elif kind == AnalysisKind.BUFFER:
            sources = [d.to_feature() for d in slots.buffer]
        elif kind == AnalysisKind.INTERSECT:
            sources = [slots.intersect_a.to_feature()] if slots.intersect_a else []
        else:
            sources = [d.to_feature() for d in self.draw_manager.drawings]

        secondary: List[Feature] = []
        if kind == AnalysisKind.INTERSECT:
            if secondary_dataset_id is not None:
                secondary = self._dataset_features(secondary_dataset_id)
            elif slots.intersect_b is not None:
                secondary = [slots.intersect_b.to_feature()]

        return AnalysisRequest(
            kind=kind,
            source_features=sources,
            secondary_features=secondary,
            parameters=parameters or {},
            style=style
        )

    async def run_analysis(self, request: AnalysisRequest) -> Optional[GroupedResult]:
        """Run an analysis and replace the analysis highlights with its output.

        Preconditions are checked before any capability call. Returns None when
        a newer analysis started before this one finished.

        Raises:
            AnalysisError: On failed preconditions or an aborting capability failure
        """
        self.orchestrator.validate_request(request)
        generation = self._next_generation("analysis")

        result: AnalysisResult = await self.orchestrator.analyze(request)
        if not self._is_current("analysis", generation):
            logger.warning(f"Analysis generation {generation} superseded, results discarded")
            return None

        grouped = self.analysis_results.aggregate(result)
        handles = await self.analysis_results.apply(
            grouped, self.render_surface, is_current=lambda: self._is_current("analysis", generation)
        )
        if handles is None or not self._is_current("analysis", generation):
            logger.warning(f"Analysis generation {generation} superseded, results discarded")
            return None

        self._last_analysis_result = grouped
        self.events.emit(EngineEvent.RESULTS_CHANGED, grouped)
        return grouped

    @property
    def last_analysis_result(self) -> Optional[GroupedResult]:
        return self._last_analysis_result

    async def clear_results(self) -> None:
        """Remove every search and analysis highlight from the render surface."""
        self._next_generation("query")
        self._next_generation("analysis")
        await self.search_results.clear(self.render_surface)
        await self.analysis_results.clear(self.render_surface)
        self._last_search = None
        self._last_query_result = None
        self._last_analysis_result = None
        self.events.emit(EngineEvent.RESULTS_CHANGED, None)

    # Events

    def subscribe(self, event: EngineEvent, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to dataset, draw state or result changes."""
        return self.events.subscribe(event, callback)

    def _compile(self, dataset_id: str, group: QueryGroup):
        if dataset_id != ALL_DATASETS:
            return [self.query_engine.compile(group, self.registry.get(dataset_id))], []

        predicates: List[Predicate] = []
        skipped: List[str] = []
        first_error: Optional[QueryValidationError] = None
        for dataset in self.registry.list():
            try:
                predicates.append(self.query_engine.compile(group, dataset))
            except QueryValidationError as e:
                skipped.append(dataset.id)
                first_error = first_error or e
                logger.debug(f"Dataset {dataset.id} skipped for query: {e.message}")

        if not predicates and first_error is not None:
            raise first_error
        return predicates, skipped

    def _dataset_features(self, dataset_id: str) -> List[Feature]:
        return [f for f in self.registry.get(dataset_id).features if f.geometry is not None]

    def _next_generation(self, kind: str) -> int:
        self._generations[kind] += 1
        return self._generations[kind]

    def _is_current(self, kind: str, generation: int) -> bool:
        return self._generations[kind] == generation

    def _on_dataset_change(self, change: DatasetChange) -> None:
        if self._last_search is not None and any(
            entry.dataset_id == change.dataset_id for entry in self._last_search.entries
        ):
            logger.info(f"Cached query results invalidated by {change.change_type.value} of {change.dataset_id}")
            self._last_search = None
            self._last_query_result = None
        self.events.emit(EngineEvent.DATASET_CHANGED, change)

    def _on_draw_state_change(self, snapshot: DrawSessionSnapshot) -> None:
        self.events.emit(EngineEvent.DRAW_STATE_CHANGED, snapshot)

    def _on_pointer(self, x: float, y: float) -> None:
        self.draw_manager.handle_pointer(x, y)
