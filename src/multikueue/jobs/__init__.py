# These ensure that our adapters are registered with the AdapterRegistry
from .registry import AdapterRegistry
from . import batchjob
from .kubeflow import paddlejob, pytorchjob, tfjob, xgboostjob
