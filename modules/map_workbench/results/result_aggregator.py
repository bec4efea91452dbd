"""Result Aggregator

Groups search and analysis results for display and drives highlight and zoom
commands on the render surface. Each apply replaces the previous highlight set:
old highlights are removed before any new one is added.
"""

import asyncio
from collections import OrderedDict
from typing import Callable, List, Optional, Union
import logging

from src.config import EngineConfig
from src.interfaces import HighlightHandle, RenderSurface
from ..analysis import AnalysisResult
from ..exceptions import CapabilityError
from ..models import Feature
from .result_models import GroupedResult, ResultGroup, SearchResult

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Builds GroupedResults and owns the highlights currently on the surface."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._handles: List[HighlightHandle] = []
        self._lock = asyncio.Lock()

    @property
    def active_handles(self) -> List[HighlightHandle]:
        return list(self._handles)

    def aggregate(self, results: Union[SearchResult, AnalysisResult]) -> GroupedResult:
        """Group a search result by dataset or an analysis result by output type."""
        if isinstance(results, SearchResult):
            return self._aggregate_search(results)
        if isinstance(results, AnalysisResult):
            return self._aggregate_analysis(results)
        raise TypeError(f"Cannot aggregate {type(results).__name__}")

    def _aggregate_search(self, results: SearchResult) -> GroupedResult:
        groups = [
            ResultGroup(key=entry.dataset_id, features=entry.matched_features)
            for entry in results.entries
            if entry.matched_features
        ]
        grouped = GroupedResult.from_groups(
            "search", groups, self.config.highlight,
            skipped_datasets=results.skipped_datasets
        )
        logger.debug(f"Aggregated search result: {grouped.get_summary()}")
        return grouped

    def _aggregate_analysis(self, results: AnalysisResult) -> GroupedResult:
        by_type = OrderedDict()
        for index, item in enumerate(results.geometries):
            key = str(item.attributes.get("type", results.kind.value))
            feature = Feature(
                id=f"{results.kind.value.lower()}-{index + 1}",
                geometry=item.geometry,
                attributes=dict(item.attributes)
            )
            by_type.setdefault(key, []).append(feature)

        groups = [
            ResultGroup(key=key, title=f"{results.kind.value}: {key}", features=features)
            for key, features in by_type.items()
        ]
        grouped = GroupedResult.from_groups(
            "analysis", groups, results.style or self.config.analysis_style,
            skipped_count=results.skipped_count,
            display_value=results.display_value
        )
        logger.debug(f"Aggregated analysis result: {grouped.get_summary()}")
        return grouped

    async def apply(self, grouped: GroupedResult, surface: RenderSurface,
                    is_current: Optional[Callable[[], bool]] = None,
                    zoom: bool = True) -> Optional[List[HighlightHandle]]:
        """Replace the highlights on ``surface`` with those of ``grouped``.

        ``is_current`` is checked once the replacement lock is held and again
        after every surface call. When it returns False, any highlights this
        call already added are removed, the zoom is skipped and None is returned.

        Raises:
            CapabilityError: If the render surface fails
        """
        def superseded() -> bool:
            return is_current is not None and not is_current()

        async with self._lock:
            if superseded():
                logger.warning("Discarding highlights of a superseded request")
                return None

            await self._clear_locked(surface)

            handles = []
            for command in grouped.highlights:
                handle = await self._surface_call(
                    "add_highlight", surface.add_highlight(command.geometry, command.style)
                )
                handles.append(handle.model_copy(update={"group": command.group}))
                self._handles.append(handles[-1])
                if superseded():
                    return await self._withdraw_locked(surface, len(handles))

            if zoom and grouped.zoom_target is not None:
                if superseded():
                    return await self._withdraw_locked(surface, len(handles))
                await self._surface_call("zoom_to", surface.zoom_to(grouped.zoom_target))
                if superseded():
                    return await self._withdraw_locked(surface, len(handles))

            logger.info(f"Applied {len(handles)} highlights across {grouped.group_count} groups")
            return handles

    async def _withdraw_locked(self, surface: RenderSurface, added: int) -> None:
        logger.warning(f"Request superseded while applying, withdrawing {added} highlights")
        await self._clear_locked(surface)
        return None

    async def clear(self, surface: RenderSurface) -> None:
        """Remove every highlight this aggregator added."""
        async with self._lock:
            await self._clear_locked(surface)

    async def _clear_locked(self, surface: RenderSurface) -> None:
        cleared = 0
        while self._handles:
            handle = self._handles[0]
            await self._surface_call("remove_highlight", surface.remove_highlight(handle))
            self._handles.pop(0)
            cleared += 1
        if cleared:
            logger.debug(f"Cleared {cleared} highlights")

    @staticmethod
    async def _surface_call(operation: str, awaitable):
        try:
            return await awaitable
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"Render surface {operation} failed: {e}", operation=operation) from e
