#!/usr/bin/env python
# -*- encoding: utf-8 -*-
import logging
import logging.config
import sys
from typing import Dict, Optional

import colorama
import structlog

from multikueue.exception import UsageError

# Keys bound to the logger by the adapter (ctx.bind()), they are rendered after the event by the console formatters
_BOUND_CONTEXT_KEYS = ('cluster', 'kind', 'key', 'workload', 'origin')

_sl_processor_timestamper = structlog.processors.TimeStamper(fmt='iso', utc=True)

_sl_foreign_pre_chain = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    _sl_processor_timestamper,
]

_sl_processors = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    _sl_processor_timestamper,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


class _ConsoleRenderer:
    """Renders ``LEVEL: event [key=value ...]`` with the bound job context, optionally colored by level."""

    _LEVEL_COLORS = {
        'critical': colorama.Fore.RED,
        'exception': colorama.Fore.RED,
        'error': colorama.Fore.RED,
        'warn': colorama.Fore.YELLOW,
        'warning': colorama.Fore.YELLOW,
        'info': colorama.Fore.GREEN,
        'debug': colorama.Fore.WHITE,
    }

    def __init__(self, colors: bool) -> None:
        if colors:
            colorama.init()
        self._colors = colors

    def __call__(self, _, __, event_dict: Dict) -> str:
        level = event_dict.get('level', '')
        line = f'{level.upper():>8s}: {event_dict.get("event", "")}'

        context = ' '.join(f'{key}={event_dict[key]}' for key in _BOUND_CONTEXT_KEYS if key in event_dict)
        if context:
            line += f' [{context}]'

        for extra in ('stack', 'exception'):
            if event_dict.get(extra):
                line += '\n' + event_dict[extra]

        if self._colors:
            line = self._LEVEL_COLORS.get(level, '') + line + colorama.Style.RESET_ALL
        return line


_FORMATTERS = {
    'console-plain': lambda: _ConsoleRenderer(colors=False),
    'console-colored': lambda: _ConsoleRenderer(colors=True),
    'json': lambda: structlog.processors.JSONRenderer(sort_keys=True),
}


def _formatter(name: str) -> Dict:
    return {
        '()': structlog.stdlib.ProcessorFormatter,
        'processor': _FORMATTERS[name](),
        'foreign_pre_chain': _sl_foreign_pre_chain,
    }


def init_logging(*,
                 logfile: Optional[str] = None,
                 console_level: str = 'INFO',
                 console_formatter: str = 'json',
                 logfile_formatter: str = 'json') -> None:
    for formatter in (console_formatter, logfile_formatter):
        if formatter not in _FORMATTERS:
            raise UsageError(f'Event formatter {formatter} is unknown.')

    handlers: Dict[str, Dict] = {
        'console': {
            'level': console_level,
            'class': 'logging.StreamHandler',
            'formatter': console_formatter,
            'stream': 'ext://sys.stderr',
        },
    }
    if logfile is not None:
        # The log file always records the sync decisions, even when the console is quieter
        handlers['file'] = {
            'level': min(console_level if isinstance(console_level, int) else logging.getLevelName(console_level),
                         logging.INFO),
            'class': 'logging.handlers.WatchedFileHandler',
            'filename': logfile,
            'formatter': logfile_formatter,
        }

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {name: _formatter(name) for name in {console_formatter, logfile_formatter}},
        'handlers': handlers,
        'loggers': {
            '': {
                'handlers': list(handlers.keys()),
                'level': 'DEBUG',
                'propagate': True,
            },
            # pykube talks through requests and urllib3, their connection chatter is of no interest
            'urllib3': {
                'level': 'WARNING',
            },
            'requests': {
                'level': 'WARNING',
            },
        },
    })


def _handle_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    structlog.get_logger().error('Uncaught exception', exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = _handle_exception

structlog.configure(
    processors=_sl_processors,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

init_logging()

logger = structlog.get_logger()
