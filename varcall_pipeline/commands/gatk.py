# -*- coding: utf-8 -*-
"""Command templates for GATK base quality score recalibration

GATK 3 and GATK 4 differ in their command line syntax; the caller passes the
``ToolGeneration`` resolved from the configured GATK version.
"""

import attr

from ..models import ToolGeneration
from .common import join_args, required


@attr.s(frozen=True, auto_attribs=True)
class BqsrParams:
    generation: ToolGeneration = attr.ib(converter=ToolGeneration)
    reference: str = required()
    input: str = required()
    output: str = required()
    recal_table: str = required()
    java_mem: str = required()
    tmp_dir: str = required()
    known_sites: tuple[str, ...] = attr.ib(converter=tuple, factory=tuple)
    intervals: str | None = attr.ib(default=None)

    @known_sites.validator
    def _check_known_sites(self, attribute, value):
        if not value:
            raise ValueError("BqsrParams: at least one known sites resource is required")


def _gatk3(params: BqsrParams, tool: str) -> str:
    return join_args(
        f"java -Xmx{params.java_mem}",
        f"-Djava.io.tmpdir={params.tmp_dir}",
        "-jar $gatk_dir/GenomeAnalysisTK.jar",
        "-T",
        tool,
        "-R",
        params.reference,
        "-I",
        params.input,
    )


def _gatk4(params: BqsrParams, tool: str) -> str:
    return join_args(
        f'gatk --java-options "-Xmx{params.java_mem} -Djava.io.tmpdir={params.tmp_dir}"',
        tool,
        "-R",
        params.reference,
        "-I",
        params.input,
    )


def get_bqsr_command(params: BqsrParams) -> str:
    """Return recalibration table + recalibrated BAM commands"""
    if params.generation == ToolGeneration.GATK3:
        known = " ".join(f"--knownSites {path}" for path in params.known_sites)
        intervals = join_args("--intervals", params.intervals) if params.intervals else None
        table = join_args(_gatk3(params, "BaseRecalibrator"), known, intervals)
        table = join_args(table, "-o", params.recal_table)
        apply = join_args(
            _gatk3(params, "PrintReads"), "-BQSR", params.recal_table, "-o", params.output
        )
    else:
        known = " ".join(f"--known-sites {path}" for path in params.known_sites)
        intervals = join_args("-L", params.intervals) if params.intervals else None
        table = join_args(_gatk4(params, "BaseRecalibrator"), known, intervals)
        table = join_args(table, "-O", params.recal_table)
        apply = join_args(
            _gatk4(params, "ApplyBQSR"),
            "--bqsr-recal-file",
            params.recal_table,
            "-O",
            params.output,
        )
    return "\n\n".join([table, apply])
