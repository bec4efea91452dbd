"""Dataset Registry for the Map Workbench

Holds loaded datasets and notifies subscribers of registry changes.
"""

from .dataset_registry import DatasetRegistry, DatasetChange, DatasetChangeType

__all__ = ['DatasetRegistry', 'DatasetChange', 'DatasetChangeType']
