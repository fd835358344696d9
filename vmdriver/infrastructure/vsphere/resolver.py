"""
Translation between inventory paths and managed object references
"""

import logging
from typing import Iterator, List, Optional, Tuple

from .client import VSphereClient
from .properties import PropertyCollector, PropertyBag
from .references import (
    ObjectReference, managed_type, POOL_KINDS, COMPUTE_KINDS,
    COMPUTE_RESOURCE, DATACENTER, FOLDER, HOST_SYSTEM,
)
from ...exceptions import (
    ResolutionError, NotFoundError, AmbiguousPathError, IntegrityError, ObjectGoneError,
)


logger = logging.getLogger(__name__)

PATH_SEPARATOR = '/'
MAX_DEPTH = 64


def split_path(path: str) -> List[str]:
    """Split ``pool1/pool2`` into names; leading and trailing slashes are ignored"""
    stripped = (path or '').strip(PATH_SEPARATOR)
    if not stripped:
        return []
    parts = stripped.split(PATH_SEPARATOR)
    if any(not part for part in parts):
        raise ResolutionError(f"Invalid inventory path '{path}'")
    return parts


class ObjectReferenceResolver:
    """
    Resolves slash-separated inventory paths to ObjectReferences and back.

    Resource pool paths are relative to the root pool of the owning host or
    cluster, so a VM placed in ``Resources/pool1/pool2`` reports
    ``pool1/pool2``. Folder paths are relative to the datacenter VM folder.
    A name shared by two siblings is never resolved to either of them.
    """

    def __init__(self, vsphere_client: VSphereClient, collector: PropertyCollector,
                 max_depth: int = MAX_DEPTH):
        self.client = vsphere_client
        self.collector = collector
        self.max_depth = max_depth

    # Reference -> path

    def resource_pool_path(self, ref: ObjectReference) -> str:
        """Path of a resource pool below its compute resource's root pool"""
        if ref.kind not in POOL_KINDS:
            raise ResolutionError(f"{ref} is not a resource pool")

        names = []
        for current, bag in self._ancestry(ref):
            if current.kind not in POOL_KINDS:
                raise IntegrityError(f"{ref} is not owned by a compute resource (reached {current})")
            if bag.parent is None:
                raise IntegrityError(f"{current} has no parent")
            if bag.parent.kind in COMPUTE_KINDS:
                break  # root pool "Resources" is not part of the path
            names.append(bag.name)

        path = PATH_SEPARATOR.join(reversed(names))
        logger.debug(f"{ref} resolves to resource pool path '{path}'")
        return path

    def folder_path(self, ref: ObjectReference) -> str:
        """Path of a folder below its datacenter's VM folder"""
        if ref.kind != FOLDER:
            raise ResolutionError(f"{ref} is not a folder")

        names = []
        for current, bag in self._ancestry(ref):
            if bag.parent is None:
                raise IntegrityError(f"{ref} is not inside a datacenter")
            if bag.parent.kind == DATACENTER:
                break
            names.append(bag.name)
        return PATH_SEPARATOR.join(reversed(names))

    def path_of(self, ref: ObjectReference) -> str:
        if ref.kind in POOL_KINDS:
            return self.resource_pool_path(ref)
        if ref.kind == FOLDER:
            return self.folder_path(ref)
        return self._fetch(ref, 'name').name

    # Path -> reference

    def resolve_resource_pool(self, path: str,
                              host: Optional[ObjectReference] = None,
                              datacenter: Optional[ObjectReference] = None) -> ObjectReference:
        """
        Find the resource pool at ``path``

        With ``host`` the path is looked up under that host's compute
        resource only; otherwise every compute resource in ``datacenter``
        (or the whole inventory) is searched and the match must be unique.
        """
        parts = split_path(path)
        if host is not None:
            roots = [self._root_pool(self._fetch(host, 'parent').parent)]
        else:
            roots = [self._root_pool(cr) for cr in self.list_objects(COMPUTE_RESOURCE, datacenter)]

        matches = []
        for root in roots:
            try:
                matches.append(self._descend(root, parts, 'resourcePool', path))
            except NotFoundError:
                continue

        if not matches:
            raise NotFoundError(f"Resource pool '{path}' not found")
        if len(matches) > 1:
            raise AmbiguousPathError(
                f"Resource pool '{path}' exists under {len(matches)} compute resources; "
                f"specify a host", details={'matches': matches})
        logger.debug(f"Resource pool '{path}' resolves to {matches[0]}")
        return matches[0]

    def resolve_folder(self, path: str, datacenter: ObjectReference) -> ObjectReference:
        """Find the VM folder at ``path`` inside ``datacenter``"""
        root = self._fetch(datacenter, 'vmFolder')['vmFolder']
        return self._descend(root, split_path(path), 'childEntity', path, kind=FOLDER)

    def find_by_name(self, kind: str, name: str,
                     root: Optional[ObjectReference] = None) -> ObjectReference:
        """Find the single object of ``kind`` called ``name``"""
        matches = [ref for ref in self.list_objects(kind, root)
                   if self._fetch(ref, 'name').name == name]
        if not matches:
            raise NotFoundError(f"{kind} '{name}' not found")
        if len(matches) > 1:
            raise AmbiguousPathError(f"{len(matches)} objects of kind {kind} are named '{name}'",
                                     details={'matches': matches})
        return matches[0]

    def find_datacenter(self, name: Optional[str] = None) -> ObjectReference:
        if name:
            return self.find_by_name(DATACENTER, name)
        datacenters = self.list_objects(DATACENTER)
        if not datacenters:
            raise NotFoundError("No datacenters found")
        if len(datacenters) > 1:
            raise AmbiguousPathError("Default datacenter resolves to multiple instances, "
                                     "please specify a datacenter")
        return datacenters[0]

    def compute_resource_of(self, host: ObjectReference) -> ObjectReference:
        if host.kind != HOST_SYSTEM:
            raise ResolutionError(f"{host} is not a host")
        parent = self._fetch(host, 'parent').parent
        if parent is None or parent.kind not in COMPUTE_KINDS:
            raise IntegrityError(f"{host} has no compute resource")
        return parent

    def list_objects(self, kind: str, root: Optional[ObjectReference] = None) -> List[ObjectReference]:
        """All objects of ``kind`` below ``root`` (default: inventory root)"""
        content = self.client.content
        container = content.rootFolder if root is None else self.client.reference(root)
        view = self.client.invoke(content.viewManager.CreateContainerView,
                                  container, [managed_type(kind)], True)
        try:
            objects = self.client.invoke(lambda: list(view.view))
        finally:
            self.client.invoke(view.Destroy)
        return [ObjectReference.from_managed_object(obj) for obj in objects]

    # Internals

    def _fetch(self, ref: ObjectReference, *paths: str) -> PropertyBag:
        try:
            return self.collector.fetch(ref, *paths)
        except ObjectGoneError as e:
            raise NotFoundError(f"{ref} not found", details={'ref': ref}) from e

    def _root_pool(self, compute_resource: Optional[ObjectReference]) -> ObjectReference:
        if compute_resource is None or compute_resource.kind not in COMPUTE_KINDS:
            raise IntegrityError(f"Expected a compute resource, got {compute_resource}")
        root = self._fetch(compute_resource, 'resourcePool').resource_pool
        if root is None:
            raise IntegrityError(f"{compute_resource} has no root resource pool")
        return root

    def _descend(self, root: ObjectReference, parts: List[str], children_path: str,
                 full_path: str, kind: Optional[str] = None) -> ObjectReference:
        current = root
        for depth, name in enumerate(parts):
            if depth >= self.max_depth:
                raise IntegrityError(f"Path '{full_path}' is deeper than {self.max_depth} levels")
            children = self._fetch(current, children_path)[children_path] or []
            named = [child for child in children
                     if (kind is None or child.kind == kind)
                     and self._fetch(child, 'name').name == name]
            if not named:
                raise NotFoundError(f"'{name}' not found in path '{full_path}'")
            if len(named) > 1:
                raise AmbiguousPathError(
                    f"'{name}' in path '{full_path}' matches {len(named)} siblings",
                    details={'matches': named})
            current = named[0]
        return current

    def _ancestry(self, ref: ObjectReference) -> Iterator[Tuple[ObjectReference, PropertyBag]]:
        """Yield (ref, name/parent bag) from ``ref`` up to the inventory root"""
        current = ref
        bag = self._fetch(ref, 'name', 'parent')
        seen = {ref}
        while True:
            yield current, bag
            parent = bag.parent
            if parent is None:
                return
            if parent in seen:
                raise IntegrityError(f"Parent chain of {ref} loops back to {parent}")
            if len(seen) > self.max_depth:
                raise IntegrityError(f"Parent chain of {ref} is deeper than {self.max_depth} levels")
            seen.add(parent)
            try:
                bag = self.collector.fetch(parent, 'name', 'parent')
            except ObjectGoneError as e:
                raise IntegrityError(f"{current} points to missing parent {parent}",
                                     details={'ref': parent}) from e
            current = parent


class ResourcePool:
    """Resource pool handle; its path is derived from the inventory on demand"""

    def __init__(self, resolver: ObjectReferenceResolver, ref: ObjectReference):
        if ref.kind not in POOL_KINDS:
            raise ValueError(f"{ref} is not a resource pool reference")
        self.resolver = resolver
        self.ref = ref

    def reference(self) -> ObjectReference:
        return self.ref

    def name(self) -> str:
        return self.resolver._fetch(self.ref, 'name').name

    def path(self) -> str:
        return self.resolver.resource_pool_path(self.ref)

    def __eq__(self, other) -> bool:
        return isinstance(other, ResourcePool) and other.ref == self.ref

    def __hash__(self) -> int:
        return hash(self.ref)

    def __repr__(self) -> str:
        return f"ResourcePool({self.ref})"
