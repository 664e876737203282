from typing import Any

from multikueue.adapter import new_mk_adapter
from multikueue.constants import KUBEFLOW_API_GROUP, KUBEFLOW_API_VERSION
from multikueue.jobs.kubeflow import kubeflowjob
from multikueue.jobs.registry import AdapterRegistry
from multikueue.resources import GroupVersionKind, JobList


class PaddleJob(kubeflowjob.KubeflowJob):

    version = f'{KUBEFLOW_API_GROUP}/{KUBEFLOW_API_VERSION}'
    endpoint = 'paddlejobs'
    kind = 'PaddleJob'


def copy_job_spec(dst: Any, src: Any) -> None:
    kubeflowjob.copy_job_spec(from_object(dst), from_object(src))


def copy_job_status(dst: Any, src: Any) -> None:
    kubeflowjob.copy_job_status(from_object(dst), from_object(src))


def get_empty_list() -> JobList:
    return JobList(gvk())


def gvk() -> GroupVersionKind:
    return PaddleJob.gvk()


def from_object(handle: Any) -> PaddleJob:
    return PaddleJob.from_object(handle)


ADAPTER = AdapterRegistry.register(name=f'{KUBEFLOW_API_GROUP}/paddlejob',
                                   order=20,
                                   adapter=new_mk_adapter(copy_job_spec, copy_job_status, get_empty_list, gvk,
                                                          from_object))
