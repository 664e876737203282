import copy
from typing import Any, Dict, Optional

from multikueue.resources import JobObject


class KubeflowJob(JobObject):
    """Common base of the Kubeflow training jobs, they all keep suspend and managedBy in their run policy."""

    managed_by_field = 'spec.runPolicy.managedBy'

    def _run_policy(self) -> Dict[str, Any]:
        return self.spec.get('runPolicy') or {}

    def is_suspended(self) -> bool:
        return bool(self._run_policy().get('suspend', False))

    def managed_by(self) -> Optional[str]:
        return self._run_policy().get('managedBy')

    def clear_managed_by(self) -> None:
        self._run_policy().pop('managedBy', None)


def copy_job_spec(dst: KubeflowJob, src: KubeflowJob) -> None:
    dst.obj['spec'] = copy.deepcopy(src.spec)


def copy_job_status(dst: KubeflowJob, src: KubeflowJob) -> None:
    if 'status' in src.obj:
        dst.obj['status'] = copy.deepcopy(src.obj['status'])
    else:
        dst.obj.pop('status', None)
