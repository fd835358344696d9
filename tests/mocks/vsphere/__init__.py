"""
vSphere mock infrastructure for testing
"""
from .base import MockDataObject, MockDiskUnit, MockDiskLayout, MockSnapshotInfo
from .tasks import MockTaskInfo, MockFault
from .inventory import MockInventory, build_standard_inventory
from .service import MockVSphereClient, MockContent, MockContainerView, MockViewManager

__all__ = [
    'MockDataObject',
    'MockDiskUnit',
    'MockDiskLayout',
    'MockSnapshotInfo',
    'MockTaskInfo',
    'MockFault',
    'MockInventory',
    'build_standard_inventory',
    'MockVSphereClient',
    'MockContent',
    'MockContainerView',
    'MockViewManager',
]
