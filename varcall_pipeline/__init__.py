# -*- coding: utf-8 -*-

from .base import PipelineError

__author__ = """Varcall Pipeline Developers"""

from varcall_pipeline._version import __version__

__all__ = ["__version__", "PipelineError"]
