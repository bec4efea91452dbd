"""Result Aggregation Models

Search results, grouped results and the highlight commands derived from them.
Grouped results are views: paging, filtering and ranking return new objects and
never mutate the result they were called on.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.interfaces import HighlightStyle
from ..models import Extent, Feature, Geometry

# Identifier columns dropped from exports
EXCLUDED_EXPORT_COLUMNS = {"objectid", "fid"}


class DatasetMatches(BaseModel):
    """Features of one dataset that satisfied a query."""
    model_config = ConfigDict(frozen=True)

    dataset_id: str
    matched_features: List[Feature] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Outcome of one query execution, replaced wholesale by the next one."""
    model_config = ConfigDict(frozen=True)

    entries: List[DatasetMatches] = Field(default_factory=list)
    skipped_datasets: List[str] = Field(default_factory=list,
                                        description="Datasets whose schema could not satisfy the query")

    @property
    def total_count(self) -> int:
        return sum(len(entry.matched_features) for entry in self.entries)

    @property
    def dataset_count(self) -> int:
        return len(self.entries)


class ResultGroup(BaseModel):
    """Features sharing a dataset id or an analysis output type."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Dataset id or analysis output type")
    title: Optional[str] = None
    features: List[Feature] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.features)


class ResultRow(BaseModel):
    """One feature of a grouped result, flattened for tabular display."""
    model_config = ConfigDict(frozen=True)

    group: str
    feature: Feature


class HighlightCommand(BaseModel):
    """Request to highlight one geometry on the render surface."""
    model_config = ConfigDict(frozen=True)

    geometry: Geometry
    style: HighlightStyle
    group: str
    feature_id: str


class GroupedResult(BaseModel):
    """Aggregated results ready for display.

    ``highlights`` carries one command per feature with a geometry, all using
    the same style. ``zoom_target`` is the combined extent of those geometries.
    """
    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="'search' or 'analysis'")
    groups: List[ResultGroup] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)
    group_count: int = Field(0, ge=0)
    highlights: List[HighlightCommand] = Field(default_factory=list)
    zoom_target: Optional[Extent] = None
    style: HighlightStyle = Field(default_factory=HighlightStyle)
    skipped_datasets: List[str] = Field(default_factory=list)
    skipped_count: int = Field(0, ge=0, description="Analysis items skipped after capability failures")
    display_value: Optional[str] = None

    @model_validator(mode='after')
    def validate_counts(self) -> "GroupedResult":
        if self.total_count != sum(group.count for group in self.groups):
            raise ValueError('total_count must equal the sum of group counts')
        if self.group_count != len(self.groups):
            raise ValueError('group_count must equal the number of groups')
        return self

    @classmethod
    def from_groups(cls, source: str, groups: Iterable[ResultGroup], style: HighlightStyle,
                    **extra: Any) -> "GroupedResult":
        """Build a grouped result, deriving counts, highlights and zoom target."""
        groups = list(groups)
        highlights = [
            HighlightCommand(geometry=feature.geometry, style=style, group=group.key, feature_id=feature.id)
            for group in groups
            for feature in group.features
            if feature.geometry is not None and not feature.geometry.is_empty
        ]
        zoom_target = Extent.combine(
            e for e in (command.geometry.extent() for command in highlights) if e is not None
        )
        return cls(
            source=source,
            groups=groups,
            total_count=sum(group.count for group in groups),
            group_count=len(groups),
            highlights=highlights,
            zoom_target=zoom_target,
            style=style,
            **extra
        )

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0

    def get_group(self, key: str) -> Optional[ResultGroup]:
        for group in self.groups:
            if group.key == key:
                return group
        return None

    def rows(self) -> List[ResultRow]:
        return [ResultRow(group=group.key, feature=feature) for group in self.groups for feature in group.features]

    def page_count(self, page_size: int) -> int:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        return (self.total_count + page_size - 1) // page_size

    def page(self, page: int, page_size: int) -> List[ResultRow]:
        """Return one 1-based page of rows; pages past the end are empty."""
        if page < 1:
            raise ValueError("page numbers start at 1")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        start = (page - 1) * page_size
        return self.rows()[start:start + page_size]

    def filter_text(self, text: str) -> "GroupedResult":
        """Keep features with an attribute value containing ``text`` (case-insensitive)."""
        needle = text.strip().casefold()
        if not needle:
            return self

        groups = []
        for group in self.groups:
            kept = [
                feature for feature in group.features
                if any(needle in str(value).casefold()
                       for value in feature.attributes.values() if value is not None)
            ]
            if kept:
                groups.append(group.model_copy(update={"features": kept}))

        return GroupedResult.from_groups(
            self.source, groups, self.style,
            skipped_datasets=self.skipped_datasets,
            skipped_count=self.skipped_count,
            display_value=self.display_value
        )

    def ranked_groups(self) -> List[ResultGroup]:
        """Groups ordered by feature count, largest first; ties broken by key."""
        return sorted(self.groups, key=lambda group: (-group.count, group.key))

    def to_dataframe(self) -> pd.DataFrame:
        """One row per feature with its group and attributes."""
        group_column = "dataset_id" if self.source == "search" else "group"
        records = [
            {group_column: row.group, "feature_id": row.feature.id, **row.feature.attributes}
            for row in self.rows()
        ]
        df = pd.DataFrame(records, columns=None if records else [group_column, "feature_id"])
        dropped = [c for c in df.columns if str(c).casefold() in EXCLUDED_EXPORT_COLUMNS]
        return df.drop(columns=dropped)

    def export_csv(self, path: Union[str, Path]) -> Path:
        """Write the tabular view to CSV (UTF-8 with BOM for spreadsheet tools)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe().to_csv(path, index=False, encoding="utf-8-sig")
        return path

    def get_summary(self) -> str:
        summary = f"{self.total_count} features in {self.group_count} groups"
        if self.display_value:
            summary += f" ({self.display_value})"
        return summary
