#!/usr/bin/env python
# -*- encoding: utf-8 -*-


class MultiKueueException(Exception):
    pass


class UsageError(MultiKueueException, RuntimeError):
    pass


class InputDataError(MultiKueueException, RuntimeError):
    pass


class InternalError(MultiKueueException, RuntimeError):
    pass


class ConfigurationError(MultiKueueException, RuntimeError):
    pass


class NotFound(MultiKueueException, LookupError):
    pass


class AlreadyExists(MultiKueueException, RuntimeError):
    pass


class Conflict(MultiKueueException, RuntimeError):
    pass


class TypeMismatch(MultiKueueException, TypeError):
    pass


class BackendError(MultiKueueException, IOError):
    pass


class Cancelled(MultiKueueException, RuntimeError):
    pass


class DeadlineExceeded(Cancelled, TimeoutError):
    pass
