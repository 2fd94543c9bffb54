# -*- coding: utf-8 -*-
"""Command template for annotation with vcf2maf + VEP"""

import os

import attr

from ..models import ReferenceBuild
from .common import join_args, optional, required


@attr.s(frozen=True, auto_attribs=True)
class Vcf2MafParams:
    """Annotate a filtered VCF into a MAF

    The MAF is written to ``output``; vcf2maf leaves the VEP-annotated VCF in ``tmp_dir``, see
    :py:func:`vep_vcf_path`.  Leaving out ``normal_id`` selects the tumour-only flavour.
    """

    build: ReferenceBuild = attr.ib(converter=ReferenceBuild)
    input: str = required()
    reference: str = required()
    tumour_id: str = required()
    output: str = required()
    tmp_dir: str = required()
    vcf2maf: str = required()
    vep_path: str = required()
    vep_data: str = required()
    normal_id: str | None = optional()
    filter_vcf: str | None = optional()
    vep_forks: int = 4


def vep_vcf_path(params: Vcf2MafParams) -> str:
    """Path of the VEP-annotated VCF that vcf2maf writes next to its temporary files"""
    stem = os.path.basename(params.input)
    if stem.endswith(".vcf"):
        stem = stem[: -len(".vcf")]
    return os.path.join(params.tmp_dir, stem + ".vep.vcf")


def get_vcf2maf_command(params: Vcf2MafParams) -> str:
    cmd = join_args(
        "perl",
        params.vcf2maf,
        "--species homo_sapiens",
        "--ncbi-build",
        params.build.ncbi_build,
        "--ref-fasta",
        params.reference,
        "--input-vcf",
        params.input,
        "--output-maf",
        params.output,
        "--tumor-id",
        params.tumour_id,
        "--vcf-tumor-id",
        params.tumour_id,
    )
    if params.normal_id:
        cmd = join_args(cmd, "--normal-id", params.normal_id, "--vcf-normal-id", params.normal_id)
    cmd = join_args(
        cmd,
        "--vep-path",
        params.vep_path,
        "--vep-data",
        params.vep_data,
        f"--vep-forks {params.vep_forks}",
        "--tmp-dir",
        params.tmp_dir,
    )
    if params.filter_vcf:
        cmd = join_args(cmd, "--filter-vcf", params.filter_vcf)
    else:
        cmd = join_args(cmd, "--filter-vcf 0")
    return cmd
