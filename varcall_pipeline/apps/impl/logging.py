# -*- coding: utf-8 -*-
"""Helper code for logging

``setup_logging`` configures the standard ``logging`` module for the command line apps; ``log``
prints short colored status lines to the terminal, independently of the run log.
"""

import logging
import sys

from termcolor import colored

#: Message level: ERROR
LVL_ERROR = "ERROR"

#: Message level: INFO
LVL_INFO = "INFO"

#: Message level: IMPORTANT
LVL_IMPORTANT = "IMPORTANT"

#: Message level: SUCCESS
LVL_SUCCESS = "SUCCESS"

#: Prefix color by level
_PREFIX_COLORS = {LVL_ERROR: "red", LVL_INFO: "yellow", LVL_SUCCESS: "green"}


def setup_logging(verbose=False):
    """Setup logger."""
    logging.basicConfig(
        format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s", datefmt="%m-%d %H:%M"
    )
    logger = logging.getLogger("")
    if verbose:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)


def log(msg, args=None, level=None, file=None):
    """Print log message for given levels of importance

    For LVL_ERROR, LVL_INFO, LVL_SUCCESS, the message will be prefixed with a colored keyword
    identifying the level.  For IMPORTANT, the message itself will be colored.
    """
    file = file or sys.stderr
    text = msg.format(**(args or {}))
    if level == LVL_IMPORTANT:
        print(colored(text, "yellow"), file=file)
    elif level in _PREFIX_COLORS:
        prefix = colored(f"{level}: ", _PREFIX_COLORS[level], attrs=["bold"])
        print(prefix, text, sep="", file=file)
    else:
        print(text, file=file)
