"""Dataset Registry

Holds the datasets (layers) loaded into the workbench. Registration is
last-write-wins; every change emits a notification to subscribers after the
registry has been updated.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional
import logging

from pydantic import BaseModel, Field

from ..exceptions import DatasetNotFoundError
from ..models import Dataset, Feature

logger = logging.getLogger(__name__)


class DatasetChangeType(str, Enum):
    """Kinds of registry change."""
    REGISTERED = "registered"
    REPLACED = "replaced"
    UNREGISTERED = "unregistered"
    FEATURE_ADDED = "feature_added"
    FEATURE_REMOVED = "feature_removed"


class DatasetChange(BaseModel):
    """Notification payload describing one registry change."""
    change_type: DatasetChangeType = Field(..., description="What happened")
    dataset_id: str = Field(..., description="Dataset affected")
    feature_id: Optional[str] = Field(None, description="Feature affected, for feature changes")


DatasetListener = Callable[[DatasetChange], None]


class DatasetRegistry:
    """In-memory registry of loaded datasets.

    Iteration order of ``list()`` is insertion order; replacing a dataset keeps
    its original position.
    """

    def __init__(self):
        self._datasets: Dict[str, Dataset] = {}
        self._listeners: List[DatasetListener] = []
        logger.info("DatasetRegistry initialized")

    def register(self, dataset: Dataset) -> None:
        """Register a dataset, replacing any previous entry with the same id."""
        replaced = dataset.id in self._datasets
        self._datasets[dataset.id] = dataset

        change_type = DatasetChangeType.REPLACED if replaced else DatasetChangeType.REGISTERED
        logger.info(f"Dataset {dataset.id} {change_type.value} ({dataset.feature_count} features)")
        self._notify(DatasetChange(change_type=change_type, dataset_id=dataset.id))

    def unregister(self, dataset_id: str) -> Dataset:
        """Remove a dataset and return it.

        Raises:
            DatasetNotFoundError: If the id is not registered
        """
        if dataset_id not in self._datasets:
            raise DatasetNotFoundError(dataset_id)
        dataset = self._datasets.pop(dataset_id)

        logger.info(f"Dataset {dataset_id} unregistered")
        self._notify(DatasetChange(change_type=DatasetChangeType.UNREGISTERED, dataset_id=dataset_id))
        return dataset

    def get(self, dataset_id: str) -> Dataset:
        """Return a registered dataset.

        Raises:
            DatasetNotFoundError: If the id is not registered
        """
        try:
            return self._datasets[dataset_id]
        except KeyError:
            raise DatasetNotFoundError(dataset_id) from None

    def list(self) -> List[Dataset]:
        return list(self._datasets.values())

    def __contains__(self, dataset_id: str) -> bool:
        return dataset_id in self._datasets

    def __len__(self) -> int:
        return len(self._datasets)

    def add_feature(self, dataset_id: str, feature: Feature) -> Dataset:
        """Append a feature to a dataset.

        The dataset is rebuilt rather than edited in place so schema and geometry
        validation run again and earlier snapshots held by results stay intact.
        """
        dataset = self.get(dataset_id)
        updated = Dataset(
            id=dataset.id,
            title=dataset.title,
            geometry_kind=dataset.geometry_kind,
            fields=dataset.fields,
            features=[*dataset.features, feature]
        )
        self._datasets[dataset_id] = updated

        logger.debug(f"Feature {feature.id} added to dataset {dataset_id}")
        self._notify(DatasetChange(
            change_type=DatasetChangeType.FEATURE_ADDED, dataset_id=dataset_id, feature_id=feature.id
        ))
        return updated

    def remove_feature(self, dataset_id: str, feature_id: str) -> Dataset:
        """Remove a feature from a dataset.

        Raises:
            DatasetNotFoundError: If the dataset is not registered
            KeyError: If the feature is not in the dataset
        """
        dataset = self.get(dataset_id)
        feature_id = str(feature_id)
        remaining = [f for f in dataset.features if f.id != feature_id]
        if len(remaining) == len(dataset.features):
            raise KeyError(f"Feature {feature_id} not found in dataset {dataset_id}")

        updated = dataset.model_copy(update={"features": remaining})
        self._datasets[dataset_id] = updated

        logger.debug(f"Feature {feature_id} removed from dataset {dataset_id}")
        self._notify(DatasetChange(
            change_type=DatasetChangeType.FEATURE_REMOVED, dataset_id=dataset_id, feature_id=feature_id
        ))
        return updated

    def subscribe(self, listener: DatasetListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: DatasetChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception(f"Dataset listener failed for {change.change_type.value} {change.dataset_id}")
