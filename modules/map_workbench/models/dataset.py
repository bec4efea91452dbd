"""Dataset and Feature Data Models

This module defines the Pydantic models for loaded datasets (map layers), their
field schemas and the features they hold.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .geometry import Geometry, GeometryKind


class FieldType(str, Enum):
    """Declared attribute types of a dataset field."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class FieldDefinition(BaseModel):
    """Definition of one attribute field in a dataset schema."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Field name")
    field_type: FieldType = Field(..., description="Declared attribute type")
    alias: Optional[str] = Field(None, description="Display alias")


class Feature(BaseModel):
    """One geometry plus attribute record within a dataset.

    Features are immutable once loaded; the geometry is shared read-only with the
    render surface for highlighting.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Feature identifier, unique within its dataset")
    geometry: Optional[Geometry] = Field(None, description="Feature geometry")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Field name to value")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Accept numeric OBJECTID-style identifiers."""
        return str(v)


class Dataset(BaseModel):
    """A named collection of features sharing a schema and geometry kind.

    Attributes:
        id: Registry key
        title: Display title
        geometry_kind: Geometry type of every feature in the dataset
        fields: Ordered field schema
        features: Features in load order
    """
    id: str = Field(..., min_length=1, description="Dataset identifier")
    title: str = Field(..., description="Display title")
    geometry_kind: GeometryKind = Field(..., description="Geometry type of every feature")
    fields: List[FieldDefinition] = Field(default_factory=list, description="Field schema")
    features: List[Feature] = Field(default_factory=list, description="Features in load order")

    @field_validator('geometry_kind')
    @classmethod
    def validate_layer_kind(cls, v: GeometryKind) -> GeometryKind:
        """Layers hold points, lines or polygons; multipoints are analysis output only."""
        if v == GeometryKind.MULTIPOINT:
            raise ValueError('Datasets cannot hold Multipoint geometry')
        return v

    @field_validator('fields')
    @classmethod
    def validate_unique_fields(cls, v: List[FieldDefinition]) -> List[FieldDefinition]:
        """Field names must be unique ignoring case."""
        seen = set()
        for field in v:
            key = field.name.lower()
            if key in seen:
                raise ValueError(f'Duplicate field name: {field.name}')
            seen.add(key)
        return v

    @model_validator(mode='after')
    def validate_features(self) -> "Dataset":
        """Feature ids must be unique and geometries must match the dataset kind."""
        seen = set()
        for feature in self.features:
            if feature.id in seen:
                raise ValueError(f'Duplicate feature id: {feature.id}')
            seen.add(feature.id)
            if feature.geometry is not None and feature.geometry.kind != self.geometry_kind:
                raise ValueError(
                    f'Feature {feature.id} has {feature.geometry.kind.value} geometry '
                    f'in a {self.geometry_kind.value} dataset'
                )
        return self

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        """Look up a field by exact name, falling back to a case-insensitive match."""
        for field in self.fields:
            if field.name == name:
                return field
        lowered = name.lower()
        for field in self.fields:
            if field.name.lower() == lowered:
                return field
        return None

    def get_feature(self, feature_id: str) -> Optional[Feature]:
        for feature in self.features:
            if feature.id == str(feature_id):
                return feature
        return None

    @property
    def feature_count(self) -> int:
        return len(self.features)
