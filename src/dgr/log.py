""" Logging setup for the DGR command-line tools. The library modules only
    ever call ``logging.getLogger(__name__)``; handlers are attached here,
    by whatever program owns the process.
"""

import logging
import sys


default_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(verbose=False, log_file=None, log_format=None):
    """ Send log output to stdout at INFO level, or DEBUG if *verbose* is
        True. If *log_file* is specified the same output is appended to
        that file as well. Returns the ``dgr`` package logger.
    """

    if verbose == True:
        level = logging.DEBUG
    else:
        level = logging.INFO

    if log_format is None:
        log_format = default_format

    formatter = logging.Formatter(log_format)
    handlers = list()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers.append(console)

    if log_file:
        try:
            appender = logging.FileHandler(log_file, mode='a')
        except OSError as e:
            sys.stderr.write('Warning: could not log to %s: %s\n' % (log_file, e))
        else:
            appender.setLevel(level)
            appender.setFormatter(formatter)
            handlers.append(appender)

    logging.basicConfig(level=level, format=log_format, handlers=handlers)

    logger = logging.getLogger('dgr')
    logger.setLevel(level)

    return logger


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
