# -*- coding: utf-8 -*-
"""Command templates for SomaticSniper and its filtering helpers"""

import enum

import attr

from .common import join_args, optional, required

#: Locate the helper scripts shipped next to the ``bam-somaticsniper`` binary
SNIPER_DIRNAME = "DIRNAME=$(which bam-somaticsniper | xargs dirname)"


class ExtraFilterMode(enum.StrEnum):
    """Which of the optional final filters apply"""

    INTERVALS = "intervals"
    PON = "pon"
    INTERVALS_AND_PON = "intervals_and_pon"

    @classmethod
    def select(cls, intervals: str | None, pon: str | None) -> "ExtraFilterMode | None":
        """Return mode for the configured resources, ``None`` if no extra filter applies"""
        if intervals and pon:
            return cls.INTERVALS_AND_PON
        elif intervals:
            return cls.INTERVALS
        elif pon:
            return cls.PON
        return None


@attr.s(frozen=True, auto_attribs=True)
class SomaticSniperParams:
    reference: str = required()
    tumour: str = required()
    normal: str = required()
    output_stem: str = required()


def get_somaticsniper_command(params: SomaticSniperParams) -> str:
    return join_args(
        "bam-somaticsniper",
        "-f",
        params.reference,
        "-F vcf",
        "-q 1 -Q 40 -G -L",
        params.tumour,
        params.normal,
        params.output_stem + ".vcf",
    )


@attr.s(frozen=True, auto_attribs=True)
class PileupParams:
    reference: str = required()
    bam: str = required()
    output: str = required()


def get_pileup_command(params: PileupParams) -> str:
    """Indel pileup, input to ``snpfilter.pl``"""
    return join_args(
        "bcftools mpileup -A -B",
        "-f",
        params.reference,
        params.bam,
        "| bcftools call -c",
        "| vcfutils.pl varFilter -Q 20",
        "| awk 'NR > 55 { print }'",
        ">",
        params.output,
    )


@attr.s(frozen=True, auto_attribs=True)
class SnpFilterParams:
    """Run ``snpfilter.pl`` against the normal and then the tumour indel pileup"""

    input: str = required()
    normal_pileup: str = required()
    tumour_pileup: str = required()
    intermediate: str = required()
    output: str = required()


def get_snp_filter_command(params: SnpFilterParams) -> str:
    return "\n\n".join(
        [
            SNIPER_DIRNAME,
            join_args(
                "perl $DIRNAME/snpfilter.pl",
                "--snp-file",
                params.input,
                "--indel-file",
                params.normal_pileup,
                "--out-file",
                params.intermediate,
            ),
            join_args(
                "perl $DIRNAME/snpfilter.pl",
                "--snp-file",
                params.intermediate,
                "--indel-file",
                params.tumour_pileup,
                "--out-file",
                params.output,
            ),
        ]
    )


@attr.s(frozen=True, auto_attribs=True)
class ReadcountParams:
    reference: str = required()
    snp_filter: str = required()
    positions: str = required()
    tumour: str = required()
    output: str = required()


def get_readcount_command(params: ReadcountParams) -> str:
    return "\n\n".join(
        [
            SNIPER_DIRNAME,
            join_args(
                "perl $DIRNAME/prepare_for_readcount.pl",
                "--snp-file",
                params.snp_filter,
                "--out-file",
                params.positions,
            ),
            join_args(
                "bam-readcount",
                "-b 15 -q 1 -w 0",
                "-f",
                params.reference,
                "-l",
                params.positions,
                params.tumour,
                ">",
                params.output,
            ),
        ]
    )


@attr.s(frozen=True, auto_attribs=True)
class FpFilterParams:
    snp_filter: str = required()
    readcounts: str = required()
    output: str = required()


def get_fp_filter_command(params: FpFilterParams) -> str:
    """False-positive filter followed by the high-confidence filter"""
    return "\n\n".join(
        [
            SNIPER_DIRNAME,
            join_args(
                "perl $DIRNAME/fpfilter.pl",
                "--snp-file",
                params.snp_filter,
                "--readcount-file",
                params.readcounts,
            ),
            join_args(
                "perl $DIRNAME/highconfidence.pl",
                "--snp-file",
                params.snp_filter + ".fp_pass",
                "--min-mapping-quality 40 --min-somatic-score 40",
                "--out-file",
                params.output,
            ),
        ]
    )


@attr.s(frozen=True, auto_attribs=True)
class ExtraFilterParams:
    mode: ExtraFilterMode = attr.ib(converter=ExtraFilterMode)
    input: str = required()
    output: str = required()
    intervals: str | None = optional()
    pon: str | None = optional()

    def __attrs_post_init__(self):
        if self.mode != ExtraFilterMode.PON and not self.intervals:
            raise ValueError(f"ExtraFilterParams: mode {self.mode} requires intervals")
        if self.mode != ExtraFilterMode.INTERVALS and not self.pon:
            raise ValueError(f"ExtraFilterParams: mode {self.mode} requires pon")


def get_extra_filter_command(params: ExtraFilterParams) -> str:
    """Restrict calls to target intervals and/or drop panel-of-normals positions"""
    if params.mode == ExtraFilterMode.PON:
        return join_args(
            "vcftools",
            "--vcf",
            params.input,
            "--exclude-positions",
            params.pon,
            "--stdout --recode",
            ">",
            params.output,
        )
    compressed = params.input + ".gz"
    if params.mode == ExtraFilterMode.INTERVALS:
        tail = "| vcf-sort -c | uniq"
    else:
        tail = join_args(
            "| vcftools --vcf -",
            "--exclude-positions",
            params.pon,
            "--stdout --recode",
            "| vcf-sort -c | uniq",
        )
    return "\n\n".join(
        [
            "\n".join(
                [
                    join_args("bgzip -f -c", params.input, ">", compressed),
                    join_args("tabix -f -p vcf", compressed),
                ]
            ),
            join_args(
                "bcftools filter", "-R", params.intervals, compressed, tail, ">", params.output
            ),
            f"rm {compressed}*",
        ]
    )
