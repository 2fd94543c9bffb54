# -*- coding: utf-8 -*-
"""Command template library

Each template is a pure function taking a frozen parameter struct and returning shell command
text.  ``build_command`` dispatches on a :py:class:`CommandKind` tag and checks that the parameter
struct matches the kind.
"""

import enum
import typing

from .collate import CollateParams, get_collate_command
from .common import (
    CleanupParams,
    PublishParams,
    VcfFilterParams,
    get_cleanup_command,
    get_publish_command,
    get_vcf_filter_command,
)
from .gatk import BqsrParams, get_bqsr_command
from .mutect import CombinePonParams, MutectParams, get_combine_pon_command, get_mutect_command
from .somaticsniper import (
    ExtraFilterParams,
    FpFilterParams,
    PileupParams,
    ReadcountParams,
    SnpFilterParams,
    SomaticSniperParams,
    get_extra_filter_command,
    get_fp_filter_command,
    get_pileup_command,
    get_readcount_command,
    get_snp_filter_command,
    get_somaticsniper_command,
)
from .vcf2maf import Vcf2MafParams, get_vcf2maf_command


class CommandKind(enum.StrEnum):
    """Tag selecting a command template"""

    BQSR = "bqsr"
    MUTECT = "mutect"
    COMBINE_PON = "combine_pon"
    VCF_FILTER = "vcf_filter"
    SOMATICSNIPER = "somaticsniper"
    PILEUP = "pileup"
    SNP_FILTER = "snp_filter"
    READCOUNT = "readcount"
    FP_FILTER = "fp_filter"
    EXTRA_FILTER = "extra_filter"
    VCF2MAF = "vcf2maf"
    PUBLISH = "publish"
    CLEANUP = "cleanup"
    COLLATE = "collate"


#: Mapping from command kind to parameter struct type and template function
TEMPLATES: dict[CommandKind, tuple[type, typing.Callable[[typing.Any], str]]] = {
    CommandKind.BQSR: (BqsrParams, get_bqsr_command),
    CommandKind.MUTECT: (MutectParams, get_mutect_command),
    CommandKind.COMBINE_PON: (CombinePonParams, get_combine_pon_command),
    CommandKind.VCF_FILTER: (VcfFilterParams, get_vcf_filter_command),
    CommandKind.SOMATICSNIPER: (SomaticSniperParams, get_somaticsniper_command),
    CommandKind.PILEUP: (PileupParams, get_pileup_command),
    CommandKind.SNP_FILTER: (SnpFilterParams, get_snp_filter_command),
    CommandKind.READCOUNT: (ReadcountParams, get_readcount_command),
    CommandKind.FP_FILTER: (FpFilterParams, get_fp_filter_command),
    CommandKind.EXTRA_FILTER: (ExtraFilterParams, get_extra_filter_command),
    CommandKind.VCF2MAF: (Vcf2MafParams, get_vcf2maf_command),
    CommandKind.PUBLISH: (PublishParams, get_publish_command),
    CommandKind.CLEANUP: (CleanupParams, get_cleanup_command),
    CommandKind.COLLATE: (CollateParams, get_collate_command),
}


def build_command(kind: CommandKind | str, params: typing.Any) -> str:
    """Return command text for ``kind`` built from ``params``"""
    params_type, template = TEMPLATES[CommandKind(kind)]
    if not isinstance(params, params_type):
        raise TypeError(
            f"command kind {kind} expects {params_type.__name__}, got {type(params).__name__}"
        )
    return template(params)


__all__ = ["CommandKind", "TEMPLATES", "build_command"]
