#!/usr/bin/env python
# -*- encoding: utf-8 -*-
from typing import Any, Optional, Tuple

from multikueue.binding import CopyFunc, EmptyListFunc, FromObjectFunc, GVKFunc, TypeBinding
from multikueue.constants import MULTIKUEUE_CONTROLLER_NAME, MULTIKUEUE_ORIGIN_LABEL, PREBUILT_WORKLOAD_LABEL
from multikueue.context import Context
from multikueue.exception import InputDataError, NotFound
from multikueue.resources import GroupVersionKind, JobList, JobObject, ObjectKey, clone_object_meta_for_creation
from multikueue.store.base import StoreBase


class MultiKueueAdapter:
    """Keeps the copy of a job in a worker cluster in sync with the job in the manager cluster.

    The adapter is generic, everything specific to a job kind comes in through the :class:`TypeBinding`. Spec
    travels from the manager to the worker when the remote copy is created, status travels back from the worker
    to the manager on each sync as long as the local job is not suspended.

    No operation retries or locks. Writes are either a create, which fails with AlreadyExists when someone else
    was faster, or a status update conditional on the resource version read before, which fails with Conflict.
    Both are safe to repeat by the caller.
    """

    __slots__ = ('_binding', )

    def __init__(self, binding: TypeBinding) -> None:
        self._binding = binding

    def gvk(self) -> GroupVersionKind:
        return self._binding.identity()

    def keep_admission_check_pending(self) -> bool:
        return False

    def _get(self, ctx: Context, store: StoreBase, key: ObjectKey) -> JobObject:
        return self._binding.as_concrete(store.get(ctx, self.gvk(), key))

    def _new_remote_job(self, local_job: JobObject, workload_name: str, origin: str) -> JobObject:
        manifest = {
            'apiVersion': local_job.obj['apiVersion'],
            'kind': local_job.obj['kind'],
            'metadata': clone_object_meta_for_creation(local_job.obj['metadata']),
        }
        manifest['metadata']['labels'][PREBUILT_WORKLOAD_LABEL] = workload_name
        manifest['metadata']['labels'][MULTIKUEUE_ORIGIN_LABEL] = origin

        remote_job = self._binding.as_concrete(manifest)
        self._binding.copy_spec(remote_job, local_job)
        # The worker's own controller has to pick the job up
        remote_job.clear_managed_by()
        return remote_job

    def sync_job(self, ctx: Context, manager_store: StoreBase, worker_store: StoreBase, key: ObjectKey,
                 workload_name: str, origin: str) -> None:
        ctx = ctx.bind(kind=self.gvk().kind, key=str(key), workload=workload_name, origin=origin)

        local_job = self._get(ctx, manager_store, key)

        try:
            remote_job: Optional[JobObject] = self._get(ctx, worker_store, key)
        except NotFound:
            remote_job = None

        if remote_job is None:
            remote_job = self._new_remote_job(local_job, workload_name, origin)
            ctx.logger.info(f'Creating remote job in cluster {worker_store.name}.')
            worker_store.create(ctx, remote_job.obj)
            return

        if local_job.is_suspended():
            ctx.logger.debug('Skipping the sync since the local job is still suspended.')
            return

        updated_job = local_job.deep_copy()
        self._binding.copy_status(updated_job, remote_job)
        if updated_job.status == local_job.status:
            ctx.logger.debug('Local job status is up to date.')
            return

        ctx.logger.debug(f'Updating local job status from cluster {worker_store.name}.')
        manager_store.update_status(ctx, updated_job.obj)

    def delete_remote_object(self, ctx: Context, store: StoreBase, key: ObjectKey) -> None:
        ctx = ctx.bind(kind=self.gvk().kind, key=str(key))
        try:
            store.delete(ctx, self.gvk(), key)
        except NotFound:
            ctx.logger.debug(f'Remote job is already gone from cluster {store.name}.')
        else:
            ctx.logger.info(f'Deleted remote job from cluster {store.name}.')

    def is_job_managed_by_kueue(self, ctx: Context, store: StoreBase, key: ObjectKey) -> Tuple[bool, str]:
        """Returns whether the job is handed over to the multi-cluster controller and a reason if it is not.

        A job which does not exist is not managed.
        """
        gvk = self.gvk()
        try:
            job = self._get(ctx, store, key)
        except NotFound:
            return False, f'{gvk.kind} {key} does not exist.'

        managed_by = job.managed_by()
        if managed_by != MULTIKUEUE_CONTROLLER_NAME:
            return False, f'Expecting {job.managed_by_field} to be "{MULTIKUEUE_CONTROLLER_NAME}" not "{managed_by or ""}".'
        return True, ''

    def get_empty_list(self) -> JobList:
        return self._binding.empty_collection()

    def workload_key_for(self, handle: Any) -> ObjectKey:
        """Maps a remote copy to the key of the workload it was created for."""
        job = self._binding.as_concrete(handle)
        workload_name = job.label(PREBUILT_WORKLOAD_LABEL)
        if not workload_name:
            raise InputDataError(f'{job.kind} {job.key} has no {PREBUILT_WORKLOAD_LABEL} label.')
        return ObjectKey(namespace=job.namespace, name=workload_name)

    def list_remote_objects(self,
                            ctx: Context,
                            store: StoreBase,
                            *,
                            origin: Optional[str] = None,
                            namespace: Optional[str] = None) -> JobList:
        """Lists the remote copies of this kind, optionally only those created by one origin."""
        labels = {PREBUILT_WORKLOAD_LABEL: None}
        if origin is not None:
            labels[MULTIKUEUE_ORIGIN_LABEL] = origin

        jobs = self.get_empty_list()
        jobs.extend(
            self._binding.as_concrete(manifest)
            for manifest in store.list(ctx, self.gvk(), namespace=namespace, labels=labels))
        return jobs

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(gvk={self.gvk()!r})'


def new_mk_adapter(copy_spec: CopyFunc, copy_status: CopyFunc, empty_list: EmptyListFunc, gvk: GVKFunc,
                   from_object: FromObjectFunc) -> MultiKueueAdapter:
    return MultiKueueAdapter(
        TypeBinding(copy_spec=copy_spec,
                    copy_status=copy_status,
                    empty_collection=empty_list,
                    identity=gvk,
                    as_concrete=from_object))
