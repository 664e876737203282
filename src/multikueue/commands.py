import json
from typing import Optional

from prettytable import PrettyTable

from multikueue.adapter import MultiKueueAdapter
from multikueue.config import Config
from multikueue.context import Context
from multikueue.exception import UsageError
from multikueue.jobs import AdapterRegistry
from multikueue.logging import logger
from multikueue.resources import ObjectKey
from multikueue.store.factory import StoreFactory


class Commands:
    """Proxy between CLI calls and the adapters."""

    def __init__(self, machine_output: bool, config: Config, timeout: Optional[float] = None) -> None:
        self.machine_output = machine_output
        self.config = config
        self.timeout = timeout

    def _context(self) -> Context:
        return Context(timeout=self.timeout, logger=logger)

    def _adapter(self, kind: str) -> MultiKueueAdapter:
        adapter = AdapterRegistry.get_by_kind(kind)
        enabled = self.config.get('enabledIntegrations', types=list)
        if adapter not in AdapterRegistry.adapters(enabled):
            raise UsageError(f'Kind {kind} is not enabled in the configuration.')
        return adapter

    def _manager_store(self):
        return StoreFactory.get_by_name(self.config.get('managerCluster', types=str))

    def _worker_store(self, worker: str):
        if worker == self.config.get('managerCluster', types=str):
            raise UsageError(f'Cluster {worker} is the manager cluster.')
        return StoreFactory.get_by_name(worker)

    def sync(self, kind: str, namespace: str, name: str, workload: str, worker: str, origin: Optional[str]) -> None:
        adapter = self._adapter(kind)
        if origin is None:
            origin = self.config.get('origin', types=str)
        adapter.sync_job(self._context(), self._manager_store(), self._worker_store(worker),
                         ObjectKey(namespace=namespace, name=name), workload, origin)

    def delete_remote(self, kind: str, namespace: str, name: str, worker: str) -> None:
        adapter = self._adapter(kind)
        adapter.delete_remote_object(self._context(), self._worker_store(worker), ObjectKey(namespace=namespace,
                                                                                           name=name))

    def is_managed(self, kind: str, namespace: str, name: str) -> None:
        adapter = self._adapter(kind)
        managed, reason = adapter.is_job_managed_by_kueue(self._context(), self._manager_store(),
                                                          ObjectKey(namespace=namespace, name=name))
        if self.machine_output:
            print(json.dumps({'managed': managed, 'reason': reason}, indent=2))
        else:
            print('managed' if managed else f'not managed: {reason}')

    def list_remote(self, kind: str, worker: str, namespace: Optional[str], all_origins: bool) -> None:
        adapter = self._adapter(kind)
        origin = None if all_origins else self.config.get('origin', types=str)
        jobs = adapter.list_remote_objects(self._context(), self._worker_store(worker), origin=origin, namespace=namespace)

        if self.machine_output:
            print(
                json.dumps([{
                    'namespace': job.namespace,
                    'name': job.name,
                    'workload': adapter.workload_key_for(job).name,
                    'suspended': job.is_suspended(),
                } for job in jobs],
                           indent=2))
        else:
            tbl = PrettyTable()
            tbl.field_names = ['namespace', 'name', 'workload', 'suspended']
            tbl.align['namespace'] = 'l'
            tbl.align['name'] = 'l'
            tbl.align['workload'] = 'l'
            for job in jobs:
                tbl.add_row([job.namespace, job.name, adapter.workload_key_for(job).name, job.is_suspended()])
            print(tbl)

    def kinds(self) -> None:
        enabled = self.config.get('enabledIntegrations', types=list)
        entries = AdapterRegistry.entries()

        if self.machine_output:
            print(
                json.dumps([{
                    'integration': entry.name,
                    'apiVersion': entry.adapter.gvk().api_version,
                    'kind': entry.adapter.gvk().kind,
                    'enabled': entry.name in enabled,
                } for entry in entries],
                           indent=2))
        else:
            tbl = PrettyTable()
            tbl.field_names = ['integration', 'apiVersion', 'kind', 'enabled']
            tbl.align['integration'] = 'l'
            for entry in entries:
                tbl.add_row([entry.name, entry.adapter.gvk().api_version, entry.adapter.gvk().kind, entry.name in enabled])
            print(tbl)
