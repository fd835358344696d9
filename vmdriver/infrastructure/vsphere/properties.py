"""
Path-scoped property retrieval for managed objects
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from pyVmomi import vmodl

from .client import VSphereClient
from .references import ObjectReference, detach, managed_type
from ...exceptions import QueryError, ObjectGoneError, UnrequestedPropertyError


logger = logging.getLogger(__name__)


class VMProperty(str, Enum):
    """Supported property queries with typed accessors on PropertyBag"""
    NAME = 'name'
    PARENT = 'parent'
    IP_ADDRESS = 'guest.ipAddress'
    DISK_LAYOUT = 'layoutEx.disk'
    RESOURCE_POOL = 'resourcePool'
    POWER_STATE = 'runtime.powerState'
    HOST = 'runtime.host'
    TEMPLATE = 'config.template'
    CURRENT_SNAPSHOT = 'snapshot.currentSnapshot'
    DATASTORE = 'datastore'


class PowerState(str, Enum):
    ON = 'poweredOn'
    OFF = 'poweredOff'
    SUSPENDED = 'suspended'


PropertyPath = Union[VMProperty, str]


def _path(path: PropertyPath) -> str:
    return path.value if isinstance(path, Enum) else str(path)


def fault_message(fault: Any) -> str:
    """Best available diagnostic text of a vSphere fault or task error"""
    for attr in ('localizedMessage', 'msg', 'message'):
        text = getattr(fault, attr, None)
        if text:
            return str(text)
    nested = getattr(fault, 'fault', None)
    if nested is not None and nested is not fault:
        for attr in ('msg', 'localizedMessage'):
            text = getattr(nested, attr, None)
            if text:
                return str(text)
    return f"Unknown error type: {type(fault).__name__}"


@dataclass(frozen=True)
class DiskChain:
    """Backing-file generations of one virtual disk, newest (delta) first"""
    key: int
    generations: Tuple[Tuple[int, ...], ...]

    def __len__(self) -> int:
        return len(self.generations)

    @property
    def is_delta(self) -> bool:
        return len(self.generations) > 1

    @classmethod
    def from_layout(cls, disk_layout: Any) -> 'DiskChain':
        # layoutEx lists the chain base first
        chain = list(disk_layout.chain or [])
        generations = tuple(tuple(unit.fileKey or ()) for unit in reversed(chain))
        return cls(key=disk_layout.key, generations=generations)


class PropertyBag(Mapping):
    """
    Values of the property paths fetched for one object.

    Reading a path that was not requested raises UnrequestedPropertyError.
    A requested path that is unset on the endpoint reads as None.
    Managed objects are returned as ObjectReferences.
    """

    def __init__(self, ref: ObjectReference, requested: Iterable[PropertyPath],
                 values: Optional[Dict[str, Any]] = None):
        self.ref = ref
        self._requested = tuple(dict.fromkeys(_path(p) for p in requested))
        self._values = {k: detach(v) for k, v in (values or {}).items()}

    def __getitem__(self, path: PropertyPath) -> Any:
        path = _path(path)
        if path in self._requested:
            return self._values.get(path)

        prefix = self._subtree_of(path)
        if prefix is not None:
            value = self._values.get(prefix)
            for part in path[len(prefix) + 1:].split('.'):
                if value is None:
                    return None
                value = getattr(value, part, None)
            return detach(value)

        raise UnrequestedPropertyError(
            f"Property '{path}' was not requested for {self.ref} "
            f"(fetched: {', '.join(self._requested)})")

    def __iter__(self) -> Iterator[str]:
        return iter(self._requested)

    def __len__(self) -> int:
        return len(self._requested)

    def __contains__(self, path) -> bool:
        path = _path(path)
        return path in self._requested or self._subtree_of(path) is not None

    def _subtree_of(self, path: str) -> Optional[str]:
        """Requested path whose subtree contains ``path``, e.g. guest for guest.ipAddress"""
        for prefix in sorted(self._requested, key=len, reverse=True):
            if path.startswith(prefix + '.'):
                return prefix
        return None

    def __repr__(self) -> str:
        return f"PropertyBag({self.ref}, {list(self._requested)})"

    @property
    def name(self) -> Optional[str]:
        return self[VMProperty.NAME]

    @property
    def parent(self) -> Optional[ObjectReference]:
        return self[VMProperty.PARENT]

    @property
    def ip_address(self) -> Optional[str]:
        return self[VMProperty.IP_ADDRESS]

    @property
    def resource_pool(self) -> Optional[ObjectReference]:
        return self[VMProperty.RESOURCE_POOL]

    @property
    def host(self) -> Optional[ObjectReference]:
        return self[VMProperty.HOST]

    @property
    def is_template(self) -> bool:
        return bool(self[VMProperty.TEMPLATE])

    @property
    def current_snapshot(self) -> Optional[ObjectReference]:
        return self[VMProperty.CURRENT_SNAPSHOT]

    @property
    def power_state(self) -> Optional[PowerState]:
        state = self[VMProperty.POWER_STATE]
        if state is None:
            return None
        return PowerState(str(state))

    @property
    def disk_chains(self) -> List[DiskChain]:
        disks = self[VMProperty.DISK_LAYOUT] or []
        return [DiskChain.from_layout(disk) for disk in disks]


class PropertyCollector:
    """Fetch only the requested property subtrees of a managed object"""

    def __init__(self, vsphere_client: VSphereClient):
        self.client = vsphere_client

    def fetch(self, ref: ObjectReference, *paths: PropertyPath) -> PropertyBag:
        """
        Retrieve ``paths`` of the object named by ``ref``

        Raises:
            ObjectGoneError: the object no longer exists
            QueryError: any other retrieval failure, including invalid paths
        """
        if not paths:
            raise ValueError("At least one property path is required")

        path_set = list(dict.fromkeys(_path(p) for p in paths))
        mo = ref.to_managed_object(self.client.service_instance._stub)

        filter_spec = vmodl.query.PropertyCollector.FilterSpec(
            objectSet=[vmodl.query.PropertyCollector.ObjectSpec(obj=mo, skip=False)],
            propSet=[vmodl.query.PropertyCollector.PropertySpec(
                type=managed_type(ref.kind), pathSet=path_set, all=False)],
        )
        options = vmodl.query.PropertyCollector.RetrieveOptions()

        logger.debug(f"Fetching {path_set} for {ref}")
        try:
            result = self.client.invoke(
                self.client.content.propertyCollector.RetrievePropertiesEx,
                [filter_spec], options)
        except vmodl.fault.ManagedObjectNotFound as e:
            raise ObjectGoneError(f"{ref} no longer exists", details={'ref': ref}) from e
        except vmodl.query.InvalidProperty as e:
            raise QueryError(f"Invalid property path in {path_set} for {ref}: {fault_message(e)}",
                             details={'ref': ref, 'paths': path_set}) from e
        except vmodl.MethodFault as e:
            raise QueryError(f"Cannot read {path_set} of {ref}: {fault_message(e)}",
                             details={'ref': ref, 'paths': path_set}) from e

        if result is None or not result.objects:
            raise ObjectGoneError(f"{ref} no longer exists", details={'ref': ref})

        content = result.objects[0]
        for missing in content.missingSet or []:
            if isinstance(missing.fault, vmodl.fault.ManagedObjectNotFound):
                raise ObjectGoneError(f"{ref} no longer exists", details={'ref': ref})
            raise QueryError(f"Cannot read '{missing.path}' of {ref}: {fault_message(missing.fault)}",
                             details={'ref': ref, 'paths': path_set})

        values = {prop.name: prop.val for prop in content.propSet or []}
        return PropertyBag(ref, path_set, values)
