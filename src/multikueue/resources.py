import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, NamedTuple, Optional

from pykube.objects import NamespacedAPIObject as pykube_NamespacedAPIObject

from multikueue.exception import TypeMismatch


class ObjectKey(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f'{self.namespace}/{self.name}'


class GroupVersionKind(NamedTuple):
    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> 'GroupVersionKind':
        if '/' in api_version:
            group, version = api_version.split('/', 1)
        else:
            group, version = '', api_version
        return cls(group=group, version=version, kind=kind)

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version

    def __str__(self) -> str:
        return f'{self.api_version}, Kind={self.kind}'


def manifest_gvk(manifest: Dict[str, Any]) -> GroupVersionKind:
    return GroupVersionKind.from_api_version(manifest.get('apiVersion', ''), manifest.get('kind', ''))


def manifest_key(manifest: Dict[str, Any]) -> ObjectKey:
    metadata = manifest.get('metadata', {})
    return ObjectKey(namespace=metadata.get('namespace', ''), name=metadata.get('name', ''))


def clone_object_meta_for_creation(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Returns the parts of metadata which may be used to create a copy of an object in another cluster."""
    cloned: Dict[str, Any] = {
        'name': metadata['name'],
        'namespace': metadata['namespace'],
        'labels': dict(metadata.get('labels', {})),
    }
    if metadata.get('annotations'):
        cloned['annotations'] = dict(metadata['annotations'])
    return cloned


class JobObject(pykube_NamespacedAPIObject, ABC):
    """Concrete view of a job manifest.

    Subclasses bind ``version``, ``endpoint`` and ``kind`` like any pykube object and tell the sync engine where
    their suspend flag and their managed-by designation live. Instances are detached from any API client, the
    stores do all the talking to the clusters.
    """

    # Dotted path of the managed-by designation, only used in diagnostics
    managed_by_field: str

    @classmethod
    def gvk(cls) -> GroupVersionKind:
        return GroupVersionKind.from_api_version(cls.version, cls.kind)

    @property
    def key(self) -> ObjectKey:
        return manifest_key(self.obj)

    @property
    def spec(self) -> Dict[str, Any]:
        return self.obj.get('spec', {})

    @property
    def status(self) -> Dict[str, Any]:
        return self.obj.get('status', {})

    def label(self, name: str) -> Optional[str]:
        return self.obj['metadata'].get('labels', {}).get(name)

    @abstractmethod
    def is_suspended(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def managed_by(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def clear_managed_by(self) -> None:
        raise NotImplementedError

    @classmethod
    def from_object(cls, handle: Any) -> 'JobObject':
        """Returns the concrete view of a manifest dictionary or of an already concrete object."""
        if isinstance(handle, cls):
            return handle
        if isinstance(handle, JobObject):
            raise TypeMismatch(f'Expected an object of kind {cls.kind}, got {handle.kind}.')
        if isinstance(handle, dict):
            gvk = manifest_gvk(handle)
            if gvk != cls.gvk():
                raise TypeMismatch(f'Expected an object of {cls.gvk()}, got {gvk}.')
            return cls(None, handle)
        raise TypeMismatch(f'Expected an object of kind {cls.kind}, got {type(handle).__name__}.')

    def deep_copy(self) -> 'JobObject':
        return self.__class__(None, copy.deepcopy(self.obj))


class JobList(list):
    """List of jobs of a single kind."""

    def __init__(self, gvk: GroupVersionKind, *args) -> None:
        super().__init__(*args)
        self.gvk = gvk
