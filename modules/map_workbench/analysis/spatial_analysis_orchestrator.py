"""Spatial Analysis Orchestrator

Runs buffer, intersect, distance and area analysis over drawn or queried
features by delegating the geometry work to a GeometryCapability. Requests are
validated synchronously before any capability call is issued.
"""

from typing import Any, List, Optional, Tuple
import logging

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from src.config import EngineConfig
from src.interfaces import AreaUnit, GeometryCapability, LengthUnit
from src.utils import log_performance
from ..exceptions import (
    AnalysisError, CapabilityError, InsufficientFeaturesError, NoPolygonDataError
)
from ..models import Geometry, GeometryKind
from .analysis_models import AnalysisGeometry, AnalysisKind, AnalysisRequest, AnalysisResult
from .units import format_area, format_distance, to_meters

logger = logging.getLogger(__name__)


class SpatialAnalysisOrchestrator:
    """Coordinates spatial analysis against a geometry capability.

    Features:
    - Up-front validation of feature counts, geometry kinds and parameters
    - Per-item skip and count for batch operations (buffer, intersect, area)
    - Single-operation failures (union, distance) abort the request
    - Configurable retry of capability calls via tenacity
    """

    def __init__(self, capability: GeometryCapability, config: Optional[EngineConfig] = None):
        """Initialize the orchestrator.

        Args:
            capability: Geometry backend that performs buffer, intersect and measurement
            config: Engine configuration for retry settings and default analysis style
        """
        self.capability = capability
        self.config = config or EngineConfig()
        logger.info("SpatialAnalysisOrchestrator initialized")
        logger.debug(f"Capability retry attempts: {self.config.analysis.capability_retry_attempts}")

    def validate_request(self, request: AnalysisRequest) -> None:
        """Check a request's preconditions without touching the capability.

        Raises:
            InsufficientFeaturesError: Too few input geometries for the operation
            NoPolygonDataError: Area analysis without any polygon input
            AnalysisError: Invalid operation parameters or empty input geometry
        """
        sources = request.source_geometries()

        if request.kind == AnalysisKind.BUFFER:
            request.buffer_parameters()
            if not sources:
                raise InsufficientFeaturesError("Buffer analysis requires at least one feature")

        elif request.kind == AnalysisKind.INTERSECT:
            request.intersect_parameters()
            secondary = request.secondary_geometries()
            if not sources or not secondary:
                raise InsufficientFeaturesError(
                    "Intersect analysis requires features in both input sets",
                    {"set_a": len(sources), "set_b": len(secondary)}
                )

        elif request.kind == AnalysisKind.DISTANCE:
            if len(sources) != 2:
                raise InsufficientFeaturesError(
                    "Distance measurement requires exactly 2 features",
                    {"supplied": len(sources)}
                )
            if any(g.is_empty for g in sources):
                raise AnalysisError("Distance measurement requires non-empty geometries")

        elif request.kind == AnalysisKind.AREA:
            if not self._polygons(sources):
                raise NoPolygonDataError(
                    "Area analysis requires at least one polygon",
                    {"supplied": len(sources)}
                )

    @log_performance
    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Validate and run one analysis request.

        Returns:
            AnalysisResult with output geometries, skip counts and display magnitude

        Raises:
            AnalysisError: On failed validation or an aborting capability failure
        """
        self.validate_request(request)

        logger.info(f"Starting {request.kind.value} analysis on {len(request.source_features)} features")

        handlers = {
            AnalysisKind.BUFFER: self._buffer,
            AnalysisKind.INTERSECT: self._intersect,
            AnalysisKind.DISTANCE: self._distance,
            AnalysisKind.AREA: self._area,
        }
        result = await handlers[request.kind](request)
        result.style = request.style or self.config.analysis_style

        logger.info(result.get_summary())
        if result.skipped_count:
            logger.warning(f"{request.kind.value} analysis skipped {result.skipped_count} items")
        return result

    async def _buffer(self, request: AnalysisRequest) -> AnalysisResult:
        params = request.buffer_parameters()
        meters = to_meters(params.distance, params.unit)
        provenance = {"type": "Buffer", "distance": params.distance, "unit": params.unit.value}

        buffers: List[Tuple[int, Geometry]] = []
        errors: List[str] = []
        sources = request.source_geometries()
        for index, geometry in enumerate(sources):
            try:
                buffered = await self._call("buffer", geometry, meters, LengthUnit.METERS)
            except CapabilityError as e:
                errors.append(f"Feature {index}: {e.message}")
                logger.warning(f"Buffer of feature {index} failed: {e.message}")
                continue
            if buffered is None or buffered.is_empty:
                errors.append(f"Feature {index}: buffer produced no geometry")
                continue
            buffers.append((index, buffered))

        if params.union and len(buffers) > 1:
            merged = await self._call("union", [b for _, b in buffers])
            geometries = [AnalysisGeometry(geometry=merged, attributes={**provenance, "union": True})]
        else:
            geometries = [
                AnalysisGeometry(geometry=b, attributes={**provenance, "feature_index": index})
                for index, b in buffers
            ]

        return AnalysisResult(
            kind=AnalysisKind.BUFFER,
            geometries=geometries,
            processed_count=len(sources),
            skipped_count=len(errors),
            errors=errors,
            magnitude=meters,
            display_value=format_distance(meters)
        )

    async def _intersect(self, request: AnalysisRequest) -> AnalysisResult:
        params = request.intersect_parameters()
        set_a = request.source_geometries()
        set_b = request.secondary_geometries()
        errors: List[str] = []

        intersections: List[AnalysisGeometry] = []
        for i, geometry_a in enumerate(set_a):
            for j, geometry_b in enumerate(set_b):
                try:
                    overlap = await self._call("intersect", geometry_a, geometry_b)
                except CapabilityError as e:
                    errors.append(f"Pair A{i}/B{j}: {e.message}")
                    logger.warning(f"Intersect of A{i} with B{j} failed: {e.message}")
                    continue
                if overlap is not None and not overlap.is_empty:
                    intersections.append(AnalysisGeometry(
                        geometry=overlap,
                        attributes={"type": "Intersection", "analysis_type": "Intersecting Area",
                                    "set_a_index": i, "set_b_index": j}
                    ))

        geometries = list(intersections)
        if params.keep_non_intersecting:
            geometries.extend(await self._non_intersecting(set_a, set_b, intersections, errors))

        total_area = await self._total_area([g.geometry for g in intersections], errors)

        return AnalysisResult(
            kind=AnalysisKind.INTERSECT,
            geometries=geometries,
            processed_count=len(set_a) * len(set_b),
            skipped_count=len(errors),
            errors=errors,
            magnitude=total_area,
            display_value=format_area(total_area)
        )

    async def _non_intersecting(self, set_a: List[Geometry], set_b: List[Geometry],
                                intersections: List[AnalysisGeometry],
                                errors: List[str]) -> List[AnalysisGeometry]:
        """Parts of each input that fall outside every intersection.

        With no intersections at all, the inputs themselves are returned.
        """
        labelled = [("A", set_a), ("B", set_b)]
        outputs: List[AnalysisGeometry] = []

        if not intersections:
            for label, geometries in labelled:
                for index, geometry in enumerate(geometries):
                    outputs.append(AnalysisGeometry(geometry=geometry, attributes={
                        "type": "Non-Intersection",
                        "analysis_type": f"Original Polygon (Set {label})",
                        "set": label,
                        "feature_index": index,
                    }))
            return outputs

        if len(intersections) == 1:
            covered = intersections[0].geometry
        else:
            covered = await self._call("union", [g.geometry for g in intersections])

        for label, geometries in labelled:
            for index, geometry in enumerate(geometries):
                try:
                    remainder = await self._call("difference", geometry, covered)
                except CapabilityError as e:
                    errors.append(f"Difference of {label}{index}: {e.message}")
                    logger.warning(f"Difference of {label}{index} failed: {e.message}")
                    continue
                if remainder is not None and not remainder.is_empty:
                    outputs.append(AnalysisGeometry(geometry=remainder, attributes={
                        "type": "Non-Intersection",
                        "analysis_type": f"Non-Intersecting Area (Set {label})",
                        "set": label,
                        "feature_index": index,
                    }))
        return outputs

    async def _distance(self, request: AnalysisRequest) -> AnalysisResult:
        first, second = request.source_geometries()
        start = first.representative_point()
        end = second.representative_point()
        connector = Geometry.line([start.coordinates, end.coordinates], first.spatial_reference_id)

        meters = await self._call("length", connector, LengthUnit.METERS)
        display = format_distance(meters)

        return AnalysisResult(
            kind=AnalysisKind.DISTANCE,
            geometries=[AnalysisGeometry(
                geometry=connector,
                attributes={"type": "Distance Measurement", "distance": display}
            )],
            processed_count=1,
            magnitude=meters,
            display_value=display
        )

    async def _area(self, request: AnalysisRequest) -> AnalysisResult:
        polygons = self._polygons(request.source_geometries())
        errors: List[str] = []
        geometries: List[AnalysisGeometry] = []
        total = 0.0

        for index, polygon in enumerate(polygons):
            try:
                area = abs(await self._call("area", polygon, AreaUnit.SQUARE_METERS))
            except CapabilityError as e:
                errors.append(f"Polygon {index}: {e.message}")
                logger.warning(f"Area of polygon {index} failed: {e.message}")
                continue
            total += area
            geometries.append(AnalysisGeometry(
                geometry=polygon,
                attributes={"type": "Area", "area": format_area(area), "area_square_meters": area}
            ))

        return AnalysisResult(
            kind=AnalysisKind.AREA,
            geometries=geometries,
            processed_count=len(polygons),
            skipped_count=len(errors),
            errors=errors,
            magnitude=total,
            display_value=format_area(total)
        )

    async def _total_area(self, geometries: List[Geometry], errors: List[str]) -> float:
        total = 0.0
        for index, geometry in enumerate(geometries):
            if geometry.kind != GeometryKind.POLYGON:
                continue
            try:
                total += abs(await self._call("area", geometry, AreaUnit.SQUARE_METERS))
            except CapabilityError as e:
                errors.append(f"Area of intersection {index}: {e.message}")
                logger.warning(f"Area of intersection {index} failed: {e.message}")
        return total

    async def _call(self, operation: str, *args: Any) -> Any:
        """Invoke a capability operation, retrying CapabilityError per configuration."""
        settings = self.config.analysis
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.capability_retry_attempts),
            wait=wait_fixed(settings.retry_wait_seconds),
            retry=retry_if_exception_type(CapabilityError),
            reraise=True
        ):
            with attempt:
                result = await self._invoke(operation, *args)
        return result

    async def _invoke(self, operation: str, *args: Any) -> Any:
        method = getattr(self.capability, operation)
        try:
            return await method(*args)
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"{operation} failed: {e}", operation=operation) from e

    @staticmethod
    def _polygons(geometries: List[Geometry]) -> List[Geometry]:
        return [g for g in geometries if g.kind == GeometryKind.POLYGON and not g.is_empty]
