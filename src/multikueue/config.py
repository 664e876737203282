#!/usr/bin/env python3
# -*- encoding: utf-8 -*-
import operator
import os
import re
from functools import reduce
from os.path import expanduser
from typing import Any, Dict, List, Optional, Sequence, Union

import semantic_version
from cerberus import SchemaError, Validator
from ruamel.yaml import YAML

from multikueue.exception import ConfigurationError, InternalError
from multikueue.logging import logger
from multikueue.versions import VERSIONS


def _load_yaml(stream) -> Any:
    return YAML(typ='safe', pure=True).load(stream)


class ConfigDict(dict):
    """Configuration section remembering its dotted path for error messages."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.full_name: Optional[str] = None


class ConfigList(list):

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.full_name: Optional[str] = None


class _Validator(Validator):

    def _normalize_coerce_to_string(self, value):
        return str(value)


class Config:
    """Validated configuration of the adapter.

    The top level document is checked against the schema of this module, the ``configuration`` section of each
    cluster is checked against the schema of its store module when the store factory loads it. Schemas live in
    ``schemas/v<major>/<module>.yaml``.
    """

    _CONFIG_DIRS = ['/etc', '/etc/multikueue']
    _CONFIG_FILE = 'multikueue.yaml'
    _CONFIGURATION_VERSION_KEY = 'configurationVersion'
    _CONFIGURATION_VERSION_REGEX = r'\d+'
    _YAML_SUFFIX = '.yaml'

    _SCHEMA_VERSIONS = [semantic_version.Version('1.0.0')]

    _schema_registry: Dict[str, Dict] = {}

    @staticmethod
    def _schema_name(module: str, version: semantic_version.Version) -> str:
        return f'{module}-v{version.major}'

    @classmethod
    def add_schema(cls, *, module: str, version: semantic_version.Version, file: str) -> None:
        try:
            with open(file, 'r') as f:
                cls._schema_registry[cls._schema_name(module, version)] = _load_yaml(f)
        except FileNotFoundError:
            raise InternalError(f'Schema {file} not found or not accessible.')

    @classmethod
    def load_schemas(cls) -> None:
        for version in cls._SCHEMA_VERSIONS:
            schema_path = os.path.join(os.path.dirname(__file__), 'schemas', f'v{version.major}')
            for filename in sorted(os.listdir(schema_path)):
                if not filename.endswith(cls._YAML_SUFFIX):
                    continue
                module = filename[:-len(cls._YAML_SUFFIX)]
                logger.debug(f'Loading schema for module {module}, version v{version}.')
                cls.add_schema(module=module, version=version, file=os.path.join(schema_path, filename))

    def _get_validator(self, *, module: str, version: semantic_version.Version) -> Validator:
        name = self._schema_name(module, version)
        try:
            schema = self._schema_registry[name]
        except KeyError:
            raise InternalError(f'Schema for module {module} is missing.') from None
        try:
            return _Validator(schema)
        except SchemaError as exception:
            raise InternalError(f'Schema {name} is invalid: {exception}') from exception

    @staticmethod
    def _log_validation_errors(errors, path: str = '') -> None:
        if isinstance(errors, dict):
            for key, value in errors.items():
                Config._log_validation_errors(value, f'{path}.{key}' if path else str(key))
        elif isinstance(errors, list):
            for value in errors:
                if isinstance(value, (dict, list)):
                    Config._log_validation_errors(value, path)
                else:
                    logger.error(f'  {path}: {value}')

    def validate(self,
                 *,
                 module: str,
                 version: semantic_version.Version = None,
                 config: Union[Dict, ConfigDict, None]) -> Dict:
        validator = self._get_validator(module=module, version=self._config_version if version is None else version)
        if not validator.validate({'configuration': config if config is not None else {}}):
            logger.error('Configuration validation errors:')
            self._log_validation_errors(validator.errors)
            raise ConfigurationError(f'Configuration for module {module} is invalid.')

        return validator.document['configuration']

    def __init__(self, ad_hoc_config: str = None, sources: Sequence[str] = None) -> None:
        if ad_hoc_config is None:
            config = self._load_first_source(sources or self._get_sources())
        else:
            config = _load_yaml(ad_hoc_config)
            if config is None:
                raise ConfigurationError('Configuration string is empty.')

        if not isinstance(config, dict) or self._CONFIGURATION_VERSION_KEY not in config:
            raise ConfigurationError(f'Configuration is missing required key "{self._CONFIGURATION_VERSION_KEY}".')

        version = str(config[self._CONFIGURATION_VERSION_KEY])
        if not re.fullmatch(self._CONFIGURATION_VERSION_REGEX, version):
            raise ConfigurationError(f'Configuration has invalid version of "{version}".')

        # Only the major version is given in the configuration
        self._config_version = semantic_version.Version(f'{version}.0.0')
        if self._config_version not in VERSIONS.configuration.supported:
            raise ConfigurationError(f'Configuration has unsupported version of "{version}".')

        self._config = ConfigDict(self.validate(module=__name__, config=config))
        logger.debug(f'Loaded configuration: {self._config}')

    @staticmethod
    def _load_first_source(sources: Sequence[str]) -> Dict:
        for source in sources:
            if not os.path.isfile(source):
                continue
            try:
                with open(source, 'r') as f:
                    config = _load_yaml(f)
            except Exception as exception:
                raise ConfigurationError(f'Configuration file {source} is invalid.') from exception
            if config is None:
                raise ConfigurationError(f'Configuration file {source} is empty.')
            return config

        raise ConfigurationError(f'No configuration file found in the default places ({", ".join(sources)}).')

    def _get_sources(self) -> List[str]:
        sources = [os.path.join(directory, self._CONFIG_FILE) for directory in self._CONFIG_DIRS]
        sources.append(expanduser(f'~/.{self._CONFIG_FILE}'))
        sources.append(expanduser(f'~/{self._CONFIG_FILE}'))
        return sources

    @staticmethod
    def _get(root,
             name: str,
             *args,
             types: Any = None,
             full_name_override: str = None,
             index: int = None) -> Any:
        """Looks up a dotted ``name`` below ``root``.

        A single extra positional argument is the default for a missing key. Sections and lists are returned as
        :class:`ConfigDict` and :class:`ConfigList` carrying their full name.
        """
        if full_name_override is not None:
            full_name = full_name_override
        else:
            full_name = getattr(root, 'full_name', None) or ''

        if index is not None:
            full_name = f'{full_name}.{index}' if full_name else str(index)
        full_name = f'{full_name}.{name}' if full_name else name

        if len(args) > 1:
            raise InternalError(f'Called with more than two arguments for key {full_name}.')

        try:
            value = reduce(operator.getitem, name.split('.'), root)
        except KeyError:
            if len(args) == 1:
                return args[0]
            raise KeyError(f'Config option {full_name} is missing.') from None

        if types is not None and not isinstance(value, types):
            raise TypeError(f'Config value {full_name} has wrong type {type(value)}, expected {types}.')

        if isinstance(value, dict):
            value = ConfigDict(value)
            value.full_name = full_name
        elif isinstance(value, list):
            value = ConfigList(value)
            value.full_name = full_name
        return value

    def get(self, name: str, *args, **kwargs) -> Any:
        return Config._get(self._config, name, *args, **kwargs)

    @staticmethod
    def get_from_dict(dict_: Dict, name: str, *args, **kwargs) -> Any:
        return Config._get(dict_, name, *args, **kwargs)


Config.load_schemas()
