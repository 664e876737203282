import copy
from typing import Any, Optional

from multikueue.adapter import new_mk_adapter
from multikueue.constants import BATCH_API_GROUP, BATCH_API_VERSION, JOB_CONTROLLER_UID_LABELS
from multikueue.jobs.registry import AdapterRegistry
from multikueue.resources import GroupVersionKind, JobList, JobObject


class BatchJob(JobObject):

    version = f'{BATCH_API_GROUP}/{BATCH_API_VERSION}'
    endpoint = 'jobs'
    kind = 'Job'

    managed_by_field = 'spec.managedBy'

    def is_suspended(self) -> bool:
        return bool(self.spec.get('suspend', False))

    def managed_by(self) -> Optional[str]:
        return self.spec.get('managedBy')

    def clear_managed_by(self) -> None:
        self.spec.pop('managedBy', None)


def copy_job_spec(dst: Any, src: Any) -> None:
    dst_job, src_job = from_object(dst), from_object(src)
    spec = copy.deepcopy(src_job.spec)

    # The selector and the matching template labels are generated by the job controller of the manager cluster
    # and carry the uid of the local job. They would be rejected by the worker cluster.
    if not spec.get('manualSelector', False):
        spec.pop('selector', None)
        template_labels = spec.get('template', {}).get('metadata', {}).get('labels', {})
        for label in JOB_CONTROLLER_UID_LABELS:
            template_labels.pop(label, None)

    dst_job.obj['spec'] = spec


def copy_job_status(dst: Any, src: Any) -> None:
    dst_job, src_job = from_object(dst), from_object(src)
    if 'status' in src_job.obj:
        dst_job.obj['status'] = copy.deepcopy(src_job.obj['status'])
    else:
        dst_job.obj.pop('status', None)


def get_empty_list() -> JobList:
    return JobList(gvk())


def gvk() -> GroupVersionKind:
    return BatchJob.gvk()


def from_object(handle: Any) -> BatchJob:
    return BatchJob.from_object(handle)


ADAPTER = AdapterRegistry.register(name=f'{BATCH_API_GROUP}/job',
                                   order=10,
                                   adapter=new_mk_adapter(copy_job_spec, copy_job_status, get_empty_list, gvk,
                                                          from_object))
