"""Shared fixtures for map workbench tests."""

import pytest

from modules.map_workbench.models import (
    Dataset, Feature, FieldDefinition, FieldType, Geometry, GeometryKind
)


def square(x: float, y: float, size: float) -> Geometry:
    """Axis-aligned square polygon with its lower-left corner at (x, y)."""
    return Geometry.polygon([(x, y), (x + size, y), (x + size, y + size), (x, y + size)])


@pytest.fixture
def parks_dataset():
    """Polygon dataset with string, number, boolean and date fields."""
    rows = [
        ("1", "Riverside Park", 12.5, True, "2023-01-15", "Council"),
        ("2", "Hilltop Reserve", 48.0, False, "2021-06-01", "Trust"),
        ("3", "Park Lane Green", 3.2, True, "2024-03-20", "Council"),
        ("4", "Harbour View", 7.9, False, None, None),
    ]
    features = [
        Feature(
            id=fid,
            geometry=square(index * 500.0, 0.0, 100.0),
            attributes={"OBJECTID": int(fid), "NAME": name, "HECTARES": hectares,
                        "PUBLIC": public, "OPENED": opened, "OWNER": owner}
        )
        for index, (fid, name, hectares, public, opened, owner) in enumerate(rows)
    ]
    return Dataset(
        id="parks",
        title="Parks",
        geometry_kind=GeometryKind.POLYGON,
        fields=[
            FieldDefinition(name="OBJECTID", field_type=FieldType.NUMBER),
            FieldDefinition(name="NAME", field_type=FieldType.STRING, alias="Park name"),
            FieldDefinition(name="HECTARES", field_type=FieldType.NUMBER),
            FieldDefinition(name="PUBLIC", field_type=FieldType.BOOLEAN),
            FieldDefinition(name="OPENED", field_type=FieldType.DATE),
            FieldDefinition(name="OWNER", field_type=FieldType.STRING),
        ],
        features=features
    )


@pytest.fixture
def trees_dataset():
    """Point dataset sharing no fields with the parks dataset except NAME."""
    return Dataset(
        id="trees",
        title="Notable Trees",
        geometry_kind=GeometryKind.POINT,
        fields=[
            FieldDefinition(name="NAME", field_type=FieldType.STRING),
            FieldDefinition(name="HEIGHT", field_type=FieldType.NUMBER),
        ],
        features=[
            Feature(id=1, geometry=Geometry.point(50.0, 50.0), attributes={"NAME": "Old Oak", "HEIGHT": 22}),
            Feature(id=2, geometry=Geometry.point(900.0, 900.0), attributes={"NAME": "Park Kauri", "HEIGHT": "35"}),
        ]
    )
