# -*- coding: utf-8 -*-
"""Command templates for MuTect (v1) and the GATK3 CombineVariants panel-of-normals merge"""

import enum

import attr

from .common import join_args, optional, required


class MutectMode(enum.StrEnum):
    """How MuTect is run for a sample"""

    #: normal sample only, used for building a panel of normals
    ARTIFACT_DETECTION = "artifact_detection"
    #: tumour with matched normal
    PAIRED = "paired"
    #: tumour without normal, requires a panel of normals
    TUMOUR_ONLY = "tumour_only"


class PonOutput(enum.StrEnum):
    """Flavour of the merged panel of normals"""

    #: all sites, useful for merging with other studies later on
    FULL = "full"
    #: sites seen in at least two normals, sites-only; the actual PoN
    TRIMMED = "trimmed"


@attr.s(frozen=True, auto_attribs=True)
class MutectReference:
    """Reference resources shared by all MuTect invocations of a run"""

    reference: str = required()
    dbsnp: str = required()
    cosmic: str | None = optional()
    intervals: str | None = optional()


@attr.s(frozen=True, auto_attribs=True)
class MutectParams:
    mode: MutectMode = attr.ib(converter=MutectMode)
    resources: MutectReference = required()
    tumour: str = required()
    tumour_id: str = required()
    output_stem: str = required()
    java_mem: str = required()
    tmp_dir: str = required()
    normal: str | None = optional()
    normal_id: str | None = optional()
    pon: str | None = optional()

    def __attrs_post_init__(self):
        if self.mode == MutectMode.PAIRED and not (self.normal and self.normal_id):
            raise ValueError("MutectParams: paired mode requires normal and normal_id")
        if self.mode == MutectMode.TUMOUR_ONLY and not self.pon:
            raise ValueError("MutectParams: tumour-only mode requires a panel of normals")


def get_mutect_command(params: MutectParams) -> str:
    """Return MuTect command line

    In ``ARTIFACT_DETECTION`` mode, ``tumour``/``tumour_id`` carry the normal sample, as MuTect
    expects it on the tumour input.
    """
    res = params.resources
    cmd = join_args(
        f"java -Xmx{params.java_mem}",
        f"-Djava.io.tmpdir={params.tmp_dir}",
        "-jar $mutect_dir/muTect.jar -T MuTect",
        "-R",
        res.reference,
        "--input_file:tumor",
        params.tumour,
    )
    if params.mode == MutectMode.ARTIFACT_DETECTION:
        cmd = join_args(cmd, "--vcf", params.output_stem + ".vcf", "--artifact_detection_mode")
    else:
        if params.mode == MutectMode.PAIRED:
            cmd = join_args(cmd, "--input_file:normal", params.normal)
        cmd = join_args(cmd, "--tumor_sample_name", params.tumour_id)
        if params.mode == MutectMode.PAIRED:
            cmd = join_args(cmd, "--normal_sample_name", params.normal_id)
        cmd = join_args(
            cmd, "--vcf", params.output_stem + ".vcf", "--out", params.output_stem + ".stats"
        )
    cmd = join_args(cmd, "--dbsnp", res.dbsnp)
    if res.cosmic:
        cmd = join_args(cmd, "--cosmic", res.cosmic)
    if params.pon and params.mode != MutectMode.ARTIFACT_DETECTION:
        cmd = join_args(cmd, "--normal_panel", params.pon)
    if res.intervals:
        cmd = join_args(cmd, "--intervals", res.intervals, "--interval_padding 100")
    return cmd


@attr.s(frozen=True, auto_attribs=True)
class CombinePonParams:
    reference: str = required()
    inputs: tuple[tuple[str, str], ...] = attr.ib(converter=tuple)
    output: str = required()
    java_mem: str = required()
    tmp_dir: str = required()
    out_type: PonOutput = attr.ib(converter=PonOutput, default=PonOutput.FULL)

    @inputs.validator
    def _check_inputs(self, attribute, value):
        if not value:
            raise ValueError("CombinePonParams: no input VCFs to combine")


def get_combine_pon_command(params: CombinePonParams) -> str:
    """Return GATK3 CombineVariants command merging the per-normal VCFs"""
    cmd = join_args(
        f"java -Xmx{params.java_mem}",
        f"-Djava.io.tmpdir={params.tmp_dir}",
        "-jar $gatk_dir/GenomeAnalysisTK.jar -T CombineVariants",
        "-R",
        params.reference,
        *(f"-V:{sample} {vcf}" for sample, vcf in params.inputs),
        "-o",
        params.output,
        "--filteredrecordsmergetype KEEP_IF_ANY_UNFILTERED",
        "--genotypemergeoption UNSORTED --filteredAreUncalled",
    )
    if params.out_type == PonOutput.TRIMMED:
        cmd = join_args(
            cmd,
            "-minN 2 -minimalVCF -suppressCommandLineHeader --excludeNonVariants --sites_only",
        )
    return cmd


def get_pon_header_fix_command(pon: str) -> str:
    """MuTect 1 only reads VCFv4.1; patch the header written by CombineVariants"""
    return "\n".join(
        [
            f"sed -i 's/VCFv4.2/VCFv4.1/g' {pon}",
            f"sed -i 's/AD,Number=R/AD,Number=./g' {pon}",
        ]
    )
