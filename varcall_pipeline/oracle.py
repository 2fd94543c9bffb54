# -*- coding: utf-8 -*-
"""Completion oracle: decide whether a stage has already run to completion

Stages record their success by writing a sentinel file as the very last line of their job
script, usually the ``<output>.md5`` checksum of their main output.  As the script is executed
with ``set -e``, a crash anywhere before that line leaves no sentinel behind, so the presence of
a non-empty sentinel is taken as durable completion.
"""

import os


def is_missing(path: str) -> bool:
    """Return ``True`` unless ``path`` exists and is non-empty"""
    try:
        return os.path.getsize(path) == 0
    except OSError:
        return True


def is_complete(path: str) -> bool:
    """Return ``True`` if the sentinel at ``path`` marks completion"""
    return not is_missing(path)


def md5_sentinel(path: str) -> str:
    """Return the checksum sentinel path for output file ``path``"""
    return f"{path}.md5"
