#!/usr/bin/env python
# -*- encoding: utf-8 -*-
import json
import posixpath
import threading
from typing import Any, Dict, List, Optional, Type
from urllib.parse import urlencode

import pykube
import requests

from multikueue.config import Config, ConfigDict
from multikueue.context import Context
from multikueue.exception import AlreadyExists, BackendError, Conflict, DeadlineExceeded, MultiKueueException, \
    NotFound
from multikueue.resources import GroupVersionKind, ObjectKey, manifest_gvk, manifest_key
from multikueue.store.base import StoreBase, label_selector

_JSON_HEADERS = {'Content-Type': 'application/json'}

_DELETE_OPTIONS = {
    'apiVersion': 'v1',
    'kind': 'DeleteOptions',
    # Dependants of the job (pods and friends) are removed by the garbage collector of the worker cluster
    'propagationPolicy': 'Background',
}


class Store(StoreBase):
    """Talks to the API server of a cluster through pykube."""

    def __init__(self,
                 *,
                 config: Optional[Config] = None,
                 name: str,
                 module_configuration: Optional[ConfigDict] = None,
                 api: Optional[pykube.HTTPClient] = None) -> None:
        super().__init__(config=config, name=name, module_configuration=module_configuration)

        if module_configuration is None:
            module_configuration = ConfigDict()

        self._request_timeout = Config.get_from_dict(module_configuration, 'requestTimeout', 10, types=(int, float))

        if api is None:
            kubeconfig = Config.get_from_dict(module_configuration, 'kubeconfig', None, types=(str, type(None)))
            context = Config.get_from_dict(module_configuration, 'context', None, types=(str, type(None)))

            if kubeconfig is None:
                kube_config = pykube.KubeConfig.from_env()
            else:
                kube_config = pykube.KubeConfig.from_file(kubeconfig)
            if context is not None:
                kube_config.set_current_context(context)
            api = pykube.HTTPClient(kube_config, timeout=self._request_timeout)

        self._api = api
        self._api_classes: Dict[GroupVersionKind, Type[pykube.objects.APIObject]] = {}
        self._api_classes_lock = threading.Lock()

    def _api_class(self, ctx: Context, gvk: GroupVersionKind) -> Type[pykube.objects.APIObject]:
        with self._api_classes_lock:
            if gvk not in self._api_classes:
                # This queries the API server for the plural name of the kind.
                ctx.check()
                try:
                    self._api_classes[gvk] = pykube.object_factory(self._api, gvk.api_version, gvk.kind)
                except ValueError as exception:
                    raise BackendError(f'Cluster {self.name} does not serve {gvk}.') from exception
                except requests.RequestException as exception:
                    raise BackendError(f'Discovery of {gvk} in cluster {self.name} failed: {exception}') from exception
            return self._api_classes[gvk]

    def _timeout(self, ctx: Context) -> float:
        ctx.check()
        remaining = ctx.remaining()
        if remaining is None:
            return self._request_timeout
        # The deadline may pass right after the check and requests refuses a timeout of zero
        if remaining <= 0:
            raise DeadlineExceeded(f'Deadline exceeded before sending the request to cluster {self.name}.')
        return min(remaining, self._request_timeout)

    def _request(self, ctx: Context, method: str, gvk: GroupVersionKind, *, namespace: Optional[str],
                 name: Optional[str] = None, subresource: Optional[str] = None,
                 params: Optional[Dict[str, str]] = None, **kwargs) -> requests.Response:
        api_class = self._api_class(ctx, gvk)
        url = posixpath.join(*[part for part in (api_class.endpoint, name, subresource) if part])
        if params:
            url = f'{url}?{urlencode(params)}'

        if namespace is not None:
            # Without a namespace pykube addresses the cluster scoped endpoint
            kwargs['namespace'] = namespace

        timeout = self._timeout(ctx)
        try:
            return getattr(self._api, method)(url=url, version=api_class.version, timeout=timeout, **kwargs)
        except requests.Timeout as exception:
            raise DeadlineExceeded(f'Request to cluster {self.name} timed out.') from exception
        except requests.RequestException as exception:
            raise BackendError(f'Request to cluster {self.name} failed: {exception}') from exception

    def _raise_for_status(self,
                          response: requests.Response,
                          description: str,
                          conflict: Type[MultiKueueException] = Conflict) -> None:
        if response.ok:
            return

        message = response.reason
        try:
            payload = response.json()
            if isinstance(payload, dict) and payload.get('kind') == 'Status':
                message = payload.get('message', message)
        except ValueError:
            pass

        if response.status_code == 404:
            raise NotFound(f'{description} in cluster {self.name}: {message}')
        elif response.status_code == 409:
            raise conflict(f'{description} in cluster {self.name}: {message}')
        else:
            raise BackendError(f'{description} in cluster {self.name} failed with HTTP status '
                               f'{response.status_code}: {message}')

    def get(self, ctx: Context, gvk: GroupVersionKind, key: ObjectKey) -> Dict[str, Any]:
        response = self._request(ctx, 'get', gvk, namespace=key.namespace, name=key.name)
        self._raise_for_status(response, f'Getting {gvk.kind} {key}')
        return response.json()

    def list(self,
             ctx: Context,
             gvk: GroupVersionKind,
             *,
             namespace: Optional[str] = None,
             labels: Optional[Dict[str, Optional[str]]] = None) -> List[Dict[str, Any]]:
        params = {'labelSelector': label_selector(labels)} if labels else None
        response = self._request(ctx, 'get', gvk, namespace=namespace, params=params)
        self._raise_for_status(response, f'Listing {gvk.kind}')
        items = response.json().get('items') or []
        # Items of a list response lack apiVersion and kind
        for item in items:
            item.setdefault('apiVersion', gvk.api_version)
            item.setdefault('kind', gvk.kind)
        return items

    def create(self, ctx: Context, manifest: Dict[str, Any]) -> Dict[str, Any]:
        gvk, key = manifest_gvk(manifest), manifest_key(manifest)
        response = self._request(ctx,
                                 'post',
                                 gvk,
                                 namespace=key.namespace,
                                 data=json.dumps(manifest),
                                 headers=_JSON_HEADERS)
        self._raise_for_status(response, f'Creating {gvk.kind} {key}', conflict=AlreadyExists)
        return response.json()

    def update_status(self, ctx: Context, manifest: Dict[str, Any]) -> Dict[str, Any]:
        gvk, key = manifest_gvk(manifest), manifest_key(manifest)
        response = self._request(ctx,
                                 'put',
                                 gvk,
                                 namespace=key.namespace,
                                 name=key.name,
                                 subresource='status',
                                 data=json.dumps(manifest),
                                 headers=_JSON_HEADERS)
        self._raise_for_status(response, f'Updating status of {gvk.kind} {key}')
        return response.json()

    def delete(self, ctx: Context, gvk: GroupVersionKind, key: ObjectKey) -> None:
        response = self._request(ctx,
                                 'delete',
                                 gvk,
                                 namespace=key.namespace,
                                 name=key.name,
                                 data=json.dumps(_DELETE_OPTIONS),
                                 headers=_JSON_HEADERS)
        self._raise_for_status(response, f'Deleting {gvk.kind} {key}')

    def close(self) -> None:
        self._api.session.close()
