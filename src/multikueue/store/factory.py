#!/usr/bin/env python
# -*- encoding: utf-8 -*-
import importlib
import threading
from typing import Dict, NamedTuple, Any, List

from multikueue.config import Config, ConfigList
from multikueue.exception import ConfigurationError, InternalError
from multikueue.store.base import StoreBase


class _StoreFactoryModule(NamedTuple):
    module: Any
    arguments: Dict[str, Any]


class StoreFactory:

    _modules: Dict[str, _StoreFactoryModule] = {}
    _local = threading.local()

    def __init__(self) -> None:
        raise InternalError('StoreFactory constructor called.')

    @classmethod
    def _import_modules(cls, config: Config, modules: ConfigList) -> None:
        for index, module_dict in enumerate(modules):
            module = Config.get_from_dict(module_dict,
                                          'module',
                                          types=str,
                                          full_name_override=modules.full_name,
                                          index=index)
            name = Config.get_from_dict(module_dict,
                                        'name',
                                        types=str,
                                        full_name_override=modules.full_name,
                                        index=index)
            configuration = Config.get_from_dict(module_dict,
                                                 'configuration',
                                                 None,
                                                 types=(dict, type(None)),
                                                 full_name_override=modules.full_name,
                                                 index=index)

            if name in cls._modules:
                raise ConfigurationError('Duplicate name "{}" in list {}.'.format(name, modules.full_name))

            module = importlib.import_module('{}.{}'.format(__package__, module))
            try:
                configuration = config.validate(module=module.__name__, config=configuration)
            except ConfigurationError as exception:
                raise ConfigurationError('Configuration for cluster {} is invalid.'.format(name)) from exception
            cls._modules[name] = _StoreFactoryModule(module=module,
                                                     arguments={
                                                         'config': config,
                                                         'name': name,
                                                         'module_configuration': configuration
                                                     })

    @classmethod
    def initialize(cls, config: Config) -> None:
        cls.close()
        cls._modules = {}
        clusters: ConfigList = config.get('clusters', types=list)
        cls._import_modules(config, clusters)

    @classmethod
    def close(cls) -> None:
        instances = cls._local.__dict__.setdefault('instances', {})

        for store in instances.values():
            store.close()

        cls._local.instances = {}

    @classmethod
    def get_by_name(cls, name: str) -> StoreBase:
        instances = cls._local.__dict__.setdefault('instances', {})

        if name not in instances:
            if name not in cls._modules:
                raise ConfigurationError('Cluster {} is undefined.'.format(name))

            module = cls._modules[name].module
            module_arguments = cls._modules[name].arguments
            instances[name] = module.Store(**module_arguments)

        return instances[name]

    @classmethod
    def names(cls) -> List[str]:
        return list(cls._modules.keys())

    @classmethod
    def get_modules(cls) -> Dict[str, _StoreFactoryModule]:
        return cls._modules
