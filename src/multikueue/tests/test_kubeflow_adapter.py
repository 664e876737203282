from unittest import TestCase

from parameterized import parameterized

from multikueue.constants import MULTIKUEUE_CONTROLLER_NAME, MULTIKUEUE_ORIGIN_LABEL, PREBUILT_WORKLOAD_LABEL
from multikueue.context import Context
from multikueue.exception import AlreadyExists, BackendError, Cancelled, Conflict, DeadlineExceeded, InputDataError, \
    NotFound, TypeMismatch
from multikueue.jobs.kubeflow import paddlejob, pytorchjob, tfjob, xgboostjob
from multikueue.resources import ObjectKey
from multikueue.store import memory
from multikueue.tests.testcase import TestCaseBase, JobBuilder, succeeded_condition

TEST_NAMESPACE = 'ns'

KUBEFLOW_KINDS = [
    ('paddlejob', paddlejob, paddlejob.PaddleJob),
    ('pytorchjob', pytorchjob, pytorchjob.PyTorchJob),
    ('tfjob', tfjob, tfjob.TFJob),
    ('xgboostjob', xgboostjob, xgboostjob.XGBoostJob),
]


class _StaleReadStore(memory.Store):
    """Hands out objects with an outdated resource version as if another writer had been faster."""

    def get(self, ctx, gvk, key):
        manifest = super().get(ctx, gvk, key)
        manifest['metadata']['resourceVersion'] = 'stale'
        return manifest


class _UnavailableStore(memory.Store):
    """Fails every read and delete like a cluster whose API server cannot be reached."""

    def get(self, ctx, gvk, key):
        raise BackendError(f'Cluster {self.name} is unavailable.')

    def delete(self, ctx, gvk, key):
        raise BackendError(f'Cluster {self.name} is unavailable.')


class _RacingCreateStore(memory.Store):
    """Lets another writer create the object between the lookup and the create."""

    def __init__(self, *, racing_object, **kwargs):
        super().__init__(**kwargs)
        self._racing_object = racing_object

    def create(self, ctx, manifest):
        super().create(ctx, self._racing_object)
        return super().create(ctx, manifest)


class KubeflowAdapterTestCase(TestCaseBase, TestCase):

    KEY = ObjectKey(namespace=TEST_NAMESPACE, name='job1')

    @staticmethod
    def _builder(job_class) -> JobBuilder:
        return JobBuilder(job_class, 'job1', TEST_NAMESPACE).queue('queue').suspend(False)

    @staticmethod
    def _remote_builder(builder: JobBuilder) -> JobBuilder:
        return builder.clone().label(PREBUILT_WORKLOAD_LABEL, 'wl1').label(MULTIKUEUE_ORIGIN_LABEL, 'origin1')

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_creates_missing_remote_job(self, _, module, job_class):
        builder = self._builder(job_class)
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker')

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertJobs([builder.obj()], manager, job_class)
        self.assertJobs([self._remote_builder(builder).obj()], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_status_from_remote_job(self, _, module, job_class):
        builder = self._builder(job_class)
        remote = self._remote_builder(builder).status_conditions(succeeded_condition())
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker', objects=[remote.obj()])

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertJobs([builder.clone().status_conditions(succeeded_condition()).obj()], manager, job_class)
        self.assertJobs([remote.obj()], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_skip_sync_status_from_remote_suspended_job(self, _, module, job_class):
        builder = self._builder(job_class)
        local = builder.clone().suspend(True)
        remote = self._remote_builder(builder).suspend(True).status_conditions(succeeded_condition())
        manager = memory.Store(name='manager', objects=[local.obj()])
        worker = memory.Store(name='worker', objects=[remote.obj()])

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertJobs([local.obj()], manager, job_class)
        self.assertJobs([remote.obj()], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_is_idempotent(self, _, module, job_class):
        builder = self._builder(job_class)
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker')

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')
        local_version = manager.get(self.ctx, job_class.gvk(), self.KEY)['metadata']['resourceVersion']
        remote_version = worker.get(self.ctx, job_class.gvk(), self.KEY)['metadata']['resourceVersion']

        for _ in range(3):
            module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertEqual(local_version, manager.get(self.ctx, job_class.gvk(), self.KEY)['metadata']['resourceVersion'])
        self.assertEqual(remote_version, worker.get(self.ctx, job_class.gvk(), self.KEY)['metadata']['resourceVersion'])

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_status_is_written_once(self, _, module, job_class):
        builder = self._builder(job_class)
        remote = self._remote_builder(builder).status_conditions(succeeded_condition())
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker', objects=[remote.obj()])

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')
        local_version = manager.get(self.ctx, job_class.gvk(), self.KEY)['metadata']['resourceVersion']
        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertEqual(local_version, manager.get(self.ctx, job_class.gvk(), self.KEY)['metadata']['resourceVersion'])

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_clears_managed_by_on_remote_job(self, _, module, job_class):
        builder = self._builder(job_class)
        manager = memory.Store(name='manager', objects=[builder.clone().managed_by().obj()])
        worker = memory.Store(name='worker')

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertJobs([builder.clone().managed_by().obj()], manager, job_class)
        self.assertJobs([self._remote_builder(builder).obj()], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_missing_local_job(self, _, module, job_class):
        manager = memory.Store(name='manager')
        worker = memory.Store(name='worker')

        self.assertRaises(NotFound, module.ADAPTER.sync_job, self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')
        self.assertJobs([], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_status_conflict(self, _, module, job_class):
        builder = self._builder(job_class)
        remote = self._remote_builder(builder).status_conditions(succeeded_condition())
        manager = _StaleReadStore(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker', objects=[remote.obj()])

        self.assertRaises(Conflict, module.ADAPTER.sync_job, self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')
        self.assertJobs([builder.obj()], manager, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_with_cancelled_context(self, _, module, job_class):
        builder = self._builder(job_class)
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker')
        ctx = Context()
        ctx.cancel()

        self.assertRaises(Cancelled, module.ADAPTER.sync_job, ctx, manager, worker, self.KEY, 'wl1', 'origin1')
        self.assertJobs([], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_with_expired_deadline(self, _, module, job_class):
        builder = self._builder(job_class)
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker')

        self.assertRaises(DeadlineExceeded, module.ADAPTER.sync_job, Context(timeout=0), manager, worker, self.KEY,
                          'wl1', 'origin1')
        self.assertJobs([], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_remote_job_is_deleted(self, _, module, job_class):
        worker = memory.Store(name='worker', objects=[self._remote_builder(self._builder(job_class)).obj()])

        module.ADAPTER.delete_remote_object(self.ctx, worker, self.KEY)

        self.assertJobs([], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_delete_missing_remote_job(self, _, module, job_class):
        other = JobBuilder(job_class, 'job2', TEST_NAMESPACE).obj()
        worker = memory.Store(name='worker', objects=[other])

        module.ADAPTER.delete_remote_object(self.ctx, worker, self.KEY)

        self.assertJobs([other], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_missing_job_is_not_considered_managed(self, _, module, job_class):
        manager = memory.Store(name='manager')

        managed, reason = module.ADAPTER.is_job_managed_by_kueue(self.ctx, manager, self.KEY)

        self.assertFalse(managed)
        self.assertIn('does not exist', reason)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_job_with_wrong_managed_by_is_not_considered_managed(self, _, module, job_class):
        for builder in (self._builder(job_class), self._builder(job_class).managed_by('kubeflow.org/training-operator')):
            with self.subTest(managed_by=builder.obj()['spec']['runPolicy'].get('managedBy')):
                manager = memory.Store(name='manager', objects=[builder.obj()])

                managed, reason = module.ADAPTER.is_job_managed_by_kueue(self.ctx, manager, self.KEY)

                self.assertFalse(managed)
                self.assertIn('spec.runPolicy.managedBy', reason)
                self.assertJobs([builder.obj()], manager, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_job_managed_by_multikueue(self, _, module, job_class):
        builder = self._builder(job_class).managed_by(MULTIKUEUE_CONTROLLER_NAME)
        manager = memory.Store(name='manager', objects=[builder.obj()])

        managed, reason = module.ADAPTER.is_job_managed_by_kueue(self.ctx, manager, self.KEY)

        self.assertTrue(managed)
        self.assertEqual('', reason)
        self.assertJobs([builder.obj()], manager, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_workload_key_for(self, _, module, job_class):
        remote = self._remote_builder(self._builder(job_class)).obj()

        self.assertEqual(ObjectKey(namespace=TEST_NAMESPACE, name='wl1'), module.ADAPTER.workload_key_for(remote))
        self.assertRaises(InputDataError, module.ADAPTER.workload_key_for, self._builder(job_class).obj())

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_list_remote_objects(self, _, module, job_class):
        mine = self._remote_builder(self._builder(job_class)).obj()
        foreign = JobBuilder(job_class, 'job2', TEST_NAMESPACE).label(PREBUILT_WORKLOAD_LABEL, 'wl2') \
            .label(MULTIKUEUE_ORIGIN_LABEL, 'origin2').obj()
        unrelated = JobBuilder(job_class, 'job3', TEST_NAMESPACE).obj()
        worker = memory.Store(name='worker', objects=[mine, foreign, unrelated])

        jobs = module.ADAPTER.list_remote_objects(self.ctx, worker, origin='origin1')
        self.assertEqual(job_class.gvk(), jobs.gvk)
        self.assertEqual(['job1'], [job.name for job in jobs])
        self.assertIsInstance(jobs[0], job_class)

        jobs = module.ADAPTER.list_remote_objects(self.ctx, worker)
        self.assertEqual(['job1', 'job2'], [job.name for job in jobs])

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_bindings(self, _, module, job_class):
        self.assertEqual(job_class.gvk(), module.ADAPTER.gvk())
        self.assertEqual('kubeflow.org', module.ADAPTER.gvk().group)
        self.assertEqual('v1', module.ADAPTER.gvk().version)
        self.assertFalse(module.ADAPTER.keep_admission_check_pending())

        empty_list = module.ADAPTER.get_empty_list()
        self.assertEqual([], empty_list)
        self.assertEqual(job_class.gvk(), empty_list.gvk)
        self.assertIsNot(empty_list, module.ADAPTER.get_empty_list())

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_copy_functions_leave_other_facets_alone(self, _, module, job_class):
        src = module.from_object(
            JobBuilder(job_class, 'src', 'other').suspend(False).label('a', 'b').status_conditions(
                succeeded_condition()).obj())
        dst = module.from_object(JobBuilder(job_class, 'dst', TEST_NAMESPACE).obj())
        dst_metadata = dict(dst.obj['metadata'])

        module.copy_job_status(dst, src)
        self.assertEqual(src.obj['status'], dst.obj['status'])
        self.assertTrue(dst.is_suspended())
        self.assertEqual(dst_metadata, dst.obj['metadata'])

        module.copy_job_spec(dst, src)
        self.assertEqual(src.obj['spec'], dst.obj['spec'])
        self.assertFalse(dst.is_suspended())
        self.assertEqual(dst_metadata, dst.obj['metadata'])

        # Copies are deep
        dst.obj['status']['conditions'].append({'type': 'Running', 'status': 'False'})
        self.assertEqual(1, len(src.obj['status']['conditions']))

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_from_object_type_mismatch(self, _, module, job_class):
        other_class = pytorchjob.PyTorchJob if job_class is not pytorchjob.PyTorchJob else tfjob.TFJob
        other = JobBuilder(other_class, 'job1', TEST_NAMESPACE).obj()

        self.assertRaises(TypeMismatch, module.from_object, other)
        self.assertRaises(TypeMismatch, module.from_object, other_class(None, other))
        self.assertRaises(TypeMismatch, module.from_object, 'job1')
        self.assertRaises(TypeMismatch, module.copy_job_spec, module.from_object(JobBuilder(job_class, 'job1',
                                                                                            TEST_NAMESPACE).obj()),
                          other)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_creates_remote_job_for_suspended_local_job(self, _, module, job_class):
        local = self._builder(job_class).suspend(True)
        manager = memory.Store(name='manager', objects=[local.obj()])
        worker = memory.Store(name='worker')

        module.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertJobs([local.obj()], manager, job_class)
        self.assertJobs([self._remote_builder(local).obj()], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_remote_job_created_concurrently(self, _, module, job_class):
        builder = self._builder(job_class)
        racing = self._remote_builder(builder).label(MULTIKUEUE_ORIGIN_LABEL, 'origin2')
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = _RacingCreateStore(name='worker', racing_object=racing.obj())

        self.assertRaises(AlreadyExists, module.ADAPTER.sync_job, self.ctx, manager, worker, self.KEY, 'wl1',
                          'origin1')
        self.assertJobs([racing.obj()], worker, job_class)
        self.assertJobs([builder.obj()], manager, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_sync_with_unavailable_worker_cluster(self, _, module, job_class):
        builder = self._builder(job_class)
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = _UnavailableStore(name='worker')

        self.assertRaises(BackendError, module.ADAPTER.sync_job, self.ctx, manager, worker, self.KEY, 'wl1',
                          'origin1')
        self.assertJobs([], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_delete_with_unavailable_worker_cluster(self, _, module, job_class):
        worker = _UnavailableStore(name='worker', objects=[self._remote_builder(self._builder(job_class)).obj()])

        self.assertRaises(BackendError, module.ADAPTER.delete_remote_object, self.ctx, worker, self.KEY)
        self.assertJobs([self._remote_builder(self._builder(job_class)).obj()], worker, job_class)

    @parameterized.expand(KUBEFLOW_KINDS)
    def test_is_job_managed_with_unavailable_manager_cluster(self, _, module, job_class):
        manager = _UnavailableStore(name='manager', objects=[self._builder(job_class).managed_by().obj()])

        self.assertRaises(BackendError, module.ADAPTER.is_job_managed_by_kueue, self.ctx, manager, self.KEY)

    def test_sync_with_foreign_kind_in_worker_cluster(self):
        builder = self._builder(pytorchjob.PyTorchJob)
        # A TFJob of the same name does not count as the remote copy of a PyTorchJob
        manager = memory.Store(name='manager', objects=[builder.obj()])
        worker = memory.Store(name='worker', objects=[JobBuilder(tfjob.TFJob, 'job1', TEST_NAMESPACE).obj()])

        pytorchjob.ADAPTER.sync_job(self.ctx, manager, worker, self.KEY, 'wl1', 'origin1')

        self.assertJobs([self._remote_builder(builder).obj()], worker, pytorchjob.PyTorchJob)
        self.assertJobs([JobBuilder(tfjob.TFJob, 'job1', TEST_NAMESPACE).obj()], worker, tfjob.TFJob)
