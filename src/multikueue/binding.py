from typing import Any, Callable, NamedTuple

from multikueue.resources import GroupVersionKind, JobList, JobObject

CopyFunc = Callable[[JobObject, JobObject], None]
EmptyListFunc = Callable[[], JobList]
GVKFunc = Callable[[], GroupVersionKind]
FromObjectFunc = Callable[[Any], JobObject]


class TypeBinding(NamedTuple):
    """The five operations adapting one job kind to the generic sync engine."""

    copy_spec: CopyFunc
    copy_status: CopyFunc
    empty_collection: EmptyListFunc
    identity: GVKFunc
    as_concrete: FromObjectFunc
