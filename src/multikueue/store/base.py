#!/usr/bin/env python
# -*- encoding: utf-8 -*-
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from multikueue.config import Config, ConfigDict
from multikueue.context import Context
from multikueue.resources import GroupVersionKind, ObjectKey


class StoreBase(ABC):
    """Generic access to the job objects of one cluster.

    All objects passed in and out are plain manifest dictionaries. Every method performs at most one request
    against the backend and honors the deadline and cancellation of ``ctx``.
    """

    def __init__(self, *, config: Optional[Config], name: str, module_configuration: Optional[ConfigDict]) -> None:
        self._config = config
        self.name = name
        self._module_configuration = module_configuration

    @abstractmethod
    def get(self, ctx: Context, gvk: GroupVersionKind, key: ObjectKey) -> Dict[str, Any]:
        """Raises NotFound when there is no such object."""
        raise NotImplementedError

    @abstractmethod
    def list(self,
             ctx: Context,
             gvk: GroupVersionKind,
             *,
             namespace: Optional[str] = None,
             labels: Optional[Dict[str, Optional[str]]] = None) -> List[Dict[str, Any]]:
        """Lists objects of a kind.

        A label with a value of None only needs to exist, its value is not compared.
        """
        raise NotImplementedError

    @abstractmethod
    def create(self, ctx: Context, manifest: Dict[str, Any]) -> Dict[str, Any]:
        """Raises AlreadyExists when an object with the same key exists."""
        raise NotImplementedError

    @abstractmethod
    def update_status(self, ctx: Context, manifest: Dict[str, Any]) -> Dict[str, Any]:
        """Replaces the status of an object.

        The manifest's resource version is a precondition, a mismatch raises Conflict.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, ctx: Context, gvk: GroupVersionKind, key: ObjectKey) -> None:
        """Raises NotFound when there is no such object."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(name={self.name!r})'


def label_selector(labels: Dict[str, Optional[str]]) -> str:
    return ','.join(key if value is None else f'{key}={value}' for key, value in sorted(labels.items()))


def labels_match(object_labels: Dict[str, str], labels: Dict[str, Optional[str]]) -> bool:
    for key, value in labels.items():
        if key not in object_labels:
            return False
        if value is not None and object_labels[key] != value:
            return False
    return True
