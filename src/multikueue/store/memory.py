#!/usr/bin/env python
# -*- encoding: utf-8 -*-
import copy
import itertools
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from multikueue.config import Config, ConfigDict
from multikueue.context import Context
from multikueue.exception import AlreadyExists, Conflict, NotFound
from multikueue.resources import GroupVersionKind, ObjectKey, manifest_gvk, manifest_key
from multikueue.store.base import StoreBase, labels_match


class Store(StoreBase):
    """Keeps objects in a dictionary.

    It behaves like an API server with the status subresource enabled for all kinds: every write bumps the
    resource version and status updates are conditional on the resource version passed in. Objects can be
    seeded with ``objects`` or with the ``objects`` list of the module configuration.
    """

    def __init__(self,
                 *,
                 config: Optional[Config] = None,
                 name: str,
                 module_configuration: Optional[ConfigDict] = None,
                 objects: Iterable[Dict[str, Any]] = ()) -> None:
        super().__init__(config=config, name=name, module_configuration=module_configuration)

        self._lock = threading.Lock()
        self._objects: Dict[Tuple[GroupVersionKind, ObjectKey], Dict[str, Any]] = {}
        self._resource_versions = itertools.count(1)

        seed = list(objects)
        if module_configuration is not None:
            seed.extend(Config.get_from_dict(module_configuration, 'objects', [], types=list))
        for manifest in seed:
            self._insert(copy.deepcopy(dict(manifest)))

    def _next_resource_version(self) -> str:
        return str(next(self._resource_versions))

    def _insert(self, manifest: Dict[str, Any]) -> Dict[str, Any]:
        index = (manifest_gvk(manifest), manifest_key(manifest))
        if index in self._objects:
            raise AlreadyExists(f'{index[0].kind} {index[1]} already exists in cluster {self.name}.')
        manifest['metadata']['resourceVersion'] = self._next_resource_version()
        self._objects[index] = manifest
        return manifest

    def _lookup(self, gvk: GroupVersionKind, key: ObjectKey) -> Dict[str, Any]:
        try:
            return self._objects[(gvk, key)]
        except KeyError:
            raise NotFound(f'{gvk.kind} {key} not found in cluster {self.name}.') from None

    def get(self, ctx: Context, gvk: GroupVersionKind, key: ObjectKey) -> Dict[str, Any]:
        ctx.check()
        with self._lock:
            return copy.deepcopy(self._lookup(gvk, key))

    def list(self,
             ctx: Context,
             gvk: GroupVersionKind,
             *,
             namespace: Optional[str] = None,
             labels: Optional[Dict[str, Optional[str]]] = None) -> List[Dict[str, Any]]:
        ctx.check()
        with self._lock:
            result = []
            for (object_gvk, key), manifest in sorted(self._objects.items(), key=lambda item: item[0][1]):
                if object_gvk != gvk:
                    continue
                if namespace is not None and key.namespace != namespace:
                    continue
                if labels and not labels_match(manifest['metadata'].get('labels', {}), labels):
                    continue
                result.append(copy.deepcopy(manifest))
            return result

    def create(self, ctx: Context, manifest: Dict[str, Any]) -> Dict[str, Any]:
        ctx.check()
        with self._lock:
            return copy.deepcopy(self._insert(copy.deepcopy(manifest)))

    def update_status(self, ctx: Context, manifest: Dict[str, Any]) -> Dict[str, Any]:
        ctx.check()
        gvk, key = manifest_gvk(manifest), manifest_key(manifest)
        with self._lock:
            stored = self._lookup(gvk, key)
            resource_version = manifest['metadata'].get('resourceVersion')
            if resource_version and resource_version != stored['metadata']['resourceVersion']:
                raise Conflict(f'Status of {gvk.kind} {key} in cluster {self.name} could not be updated, '
                               f'resource version {resource_version} is outdated.')
            if 'status' in manifest:
                stored['status'] = copy.deepcopy(manifest['status'])
            else:
                stored.pop('status', None)
            stored['metadata']['resourceVersion'] = self._next_resource_version()
            return copy.deepcopy(stored)

    def delete(self, ctx: Context, gvk: GroupVersionKind, key: ObjectKey) -> None:
        ctx.check()
        with self._lock:
            self._lookup(gvk, key)
            del self._objects[(gvk, key)]
