# Value of the managed-by designation that hands a job over to the multi-cluster controller
MULTIKUEUE_CONTROLLER_NAME = 'kueue.x-k8s.io/multikueue'

# Labels put on remote copies created by the sync engine
PREBUILT_WORKLOAD_LABEL = 'kueue.x-k8s.io/prebuilt-workload-name'
MULTIKUEUE_ORIGIN_LABEL = 'kueue.x-k8s.io/multikueue-origin'

# Labels generated by the batch Job controller, they must not be carried over to another cluster
JOB_CONTROLLER_UID_LABELS = ('controller-uid', 'batch.kubernetes.io/controller-uid')

KUBEFLOW_API_GROUP = 'kubeflow.org'
KUBEFLOW_API_VERSION = 'v1'

BATCH_API_GROUP = 'batch'
BATCH_API_VERSION = 'v1'
