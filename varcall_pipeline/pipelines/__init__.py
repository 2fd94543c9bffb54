# -*- coding: utf-8 -*-
"""The concrete pipelines"""

from .mutect import MutectPipeline
from .mutect_pon import MutectPonPipeline
from .somaticsniper import SomaticSniperPipeline

#: Mapping from pipeline name to class
PIPELINES = {
    MutectPipeline.name: MutectPipeline,
    MutectPonPipeline.name: MutectPonPipeline,
    SomaticSniperPipeline.name: SomaticSniperPipeline,
}

__all__ = ["PIPELINES", "MutectPipeline", "MutectPonPipeline", "SomaticSniperPipeline"]
