#!/usr/bin/env python
# -*- encoding: utf-8 -*-
# PYTHON_ARGCOMPLETE_OK

import argparse
import os
import sys
from functools import partial
from typing import NamedTuple, Type, Optional

import argcomplete

import multikueue.exception


class _ExceptionMapping(NamedTuple):
    exception: Type[BaseException]
    exit_code: int
    include_stacktrace: bool


def completion(shell: str) -> None:
    print(argcomplete.shellcode([sys.argv[0]], shell=shell))


def positive_float(minimum: float, arg: str) -> Optional[float]:
    if arg is None:
        return None

    try:
        value = float(arg)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err))

    if value < minimum:
        raise argparse.ArgumentTypeError('Expected a value of at least {}, got {}.'.format(minimum, value))

    return value


def _add_job_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument('kind', help='Job kind (e.g. PyTorchJob) or integration name (e.g. kubeflow.org/pytorchjob)')
    p.add_argument('namespace', help='Namespace of the job')
    p.add_argument('name', help='Name of the job')


def main():
    parser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter, allow_abbrev=False)

    parser.add_argument('-c', '--config-file', default=None, type=str, help='Specify a non-default configuration file')
    parser.add_argument('-m',
                        '--machine-output',
                        action='store_true',
                        default=False,
                        help='Enable machine-readable JSON output')
    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO',
                        help='Only log messages of this level or above on the console')
    parser.add_argument('--no-color',
                        action='store_true',
                        default=False,
                        help='Disable colorization of console logging')
    parser.add_argument('-t',
                        '--timeout',
                        type=partial(positive_float, 0.1),
                        default=None,
                        help='Abort the command after this many seconds')

    subparsers_root = parser.add_subparsers(title='commands')

    # SYNC
    p = subparsers_root.add_parser('sync',
                                   help='Create the remote copy of a job or copy its status back',
                                   formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    p.add_argument('-o', '--origin', default=None, help='Origin label value (if unspecified the configured one is used)')
    p.add_argument('-w', '--worker', required=True, help='Name of the worker cluster')
    _add_job_arguments(p)
    p.add_argument('workload', help='Name of the workload the job was admitted with')
    p.set_defaults(func='sync')

    # DELETE-REMOTE
    p = subparsers_root.add_parser('delete-remote', help='Delete the remote copy of a job')
    p.add_argument('-w', '--worker', required=True, help='Name of the worker cluster')
    _add_job_arguments(p)
    p.set_defaults(func='delete_remote')

    # IS-MANAGED
    p = subparsers_root.add_parser('is-managed', help='Check whether a job is managed by the multi-cluster controller')
    _add_job_arguments(p)
    p.set_defaults(func='is_managed')

    # LIST-REMOTE
    p = subparsers_root.add_parser('list-remote', help='List remote copies of jobs in a worker cluster')
    p.add_argument('-w', '--worker', required=True, help='Name of the worker cluster')
    p.add_argument('-n', '--namespace', default=None, help='Limit the list to this namespace')
    p.add_argument('-a',
                   '--all-origins',
                   action='store_true',
                   default=False,
                   help='Include remote copies created by other managers')
    p.add_argument('kind', help='Job kind or integration name')
    p.set_defaults(func='list_remote')

    # KINDS
    p = subparsers_root.add_parser('kinds', help='List supported job kinds')
    p.set_defaults(func='kinds')

    # COMPLETION
    p = subparsers_root.add_parser('completion', help='Emit autocompletion script')
    p.add_argument('shell', choices=['bash', 'tcsh'], help='Shell')
    p.set_defaults(func='completion')

    argcomplete.autocomplete(parser)
    args = parser.parse_args()

    if not hasattr(args, 'func'):
        parser.print_usage()
        sys.exit(os.EX_USAGE)

    if args.func == 'completion':
        completion(args.shell)
        sys.exit(os.EX_OK)

    from multikueue.config import Config
    from multikueue.logging import logger, init_logging
    if args.config_file is not None and args.config_file != '':
        try:
            cfg = open(args.config_file, 'r', encoding='utf-8').read()
        except FileNotFoundError:
            logger.error('File {} not found.'.format(args.config_file))
            sys.exit(os.EX_USAGE)
        config = Config(ad_hoc_config=cfg)
    else:
        config = Config()

    console_formatter = 'console-colored'
    if args.machine_output:
        console_formatter = 'json'
    elif args.no_color:
        console_formatter = 'console-plain'

    init_logging(logfile=config.get('logFile', None, types=(str, type(None))),
                 console_level=args.log_level,
                 console_formatter=console_formatter)

    from multikueue.store.factory import StoreFactory
    StoreFactory.initialize(config)

    import multikueue.commands
    commands = multikueue.commands.Commands(args.machine_output, config, timeout=args.timeout)
    func = getattr(commands, args.func)

    # Pass over to function
    func_args = dict(args._get_kwargs())
    del func_args['config_file']
    del func_args['func']
    del func_args['log_level']
    del func_args['machine_output']
    del func_args['no_color']
    del func_args['timeout']

    # From most specific to least specific
    # yapf: disable
    exception_mappings = [
        _ExceptionMapping(exception=multikueue.exception.UsageError, exit_code=os.EX_USAGE, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.InternalError, exit_code=os.EX_SOFTWARE, include_stacktrace=True),
        _ExceptionMapping(exception=multikueue.exception.ConfigurationError, exit_code=os.EX_CONFIG, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.InputDataError, exit_code=os.EX_DATAERR, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.NotFound, exit_code=os.EX_NOINPUT, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.AlreadyExists, exit_code=os.EX_CANTCREAT, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.Conflict, exit_code=os.EX_TEMPFAIL, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.Cancelled, exit_code=os.EX_TEMPFAIL, include_stacktrace=False),
        _ExceptionMapping(exception=multikueue.exception.TypeMismatch, exit_code=os.EX_SOFTWARE, include_stacktrace=True),
        _ExceptionMapping(exception=multikueue.exception.BackendError, exit_code=os.EX_UNAVAILABLE, include_stacktrace=False),
        _ExceptionMapping(exception=PermissionError, exit_code=os.EX_NOPERM, include_stacktrace=False),
        _ExceptionMapping(exception=FileNotFoundError, exit_code=os.EX_NOINPUT, include_stacktrace=False),
        _ExceptionMapping(exception=OSError, exit_code=os.EX_OSERR, include_stacktrace=True),
        _ExceptionMapping(exception=KeyboardInterrupt, exit_code=os.EX_NOINPUT, include_stacktrace=False),
        _ExceptionMapping(exception=BaseException, exit_code=os.EX_SOFTWARE, include_stacktrace=True),
    ]
    # yapf: enable

    try:
        logger.debug('commands.{0}(**{1!r})'.format(args.func, func_args))
        func(**func_args)
        sys.exit(os.EX_OK)
    except SystemExit:
        raise
    except BaseException as exception:
        for case in exception_mappings:
            if isinstance(exception, case.exception):
                message = str(exception)
                if message:
                    message = '{}: {}'.format(exception.__class__.__name__, message)
                else:
                    message = '{} exception occurred.'.format(exception.__class__.__name__)
                if case.include_stacktrace:
                    logger.error(message, exc_info=True)
                else:
                    logger.debug(message, exc_info=True)
                    logger.error(message)
                sys.exit(case.exit_code)
    finally:
        StoreFactory.close()


if __name__ == '__main__':
    main()
