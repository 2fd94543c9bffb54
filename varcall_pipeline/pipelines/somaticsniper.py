# -*- coding: utf-8 -*-
"""Somatic SNV calling with SomaticSniper

SomaticSniper needs a matched normal; patients without one are skipped.  The indel pileup of the
normal is computed once per patient and shared by all tumours of the patient.  Per tumour, the
calls pass through ``snpfilter.pl`` (against both pileups), ``bam-readcount``, the false-positive
and high-confidence filters and, if target intervals or a panel of normals are configured, a
final position filter before annotation.
"""

import os
import typing

from ..commands import CommandKind, build_command
from ..commands.common import with_sentinel
from ..commands.somaticsniper import (
    ExtraFilterMode,
    ExtraFilterParams,
    FpFilterParams,
    PileupParams,
    ReadcountParams,
    SnpFilterParams,
    SomaticSniperParams,
)
from ..config import PatientSamples, SampleKind
from ..graph import BaseStepPart, Phase, SampleContext, stage_resources
from ..oracle import md5_sentinel
from ..resource_usage import ResourceUsage
from .common import AnnotateStepPart, BqsrStepPart, CallingPipeline, PublishAnnotationStepPart


class SniperOutputs:
    """Paths of the intermediate SomaticSniper files of a tumour"""

    def __init__(self, parent: "SomaticSniperPipeline", ctx: SampleContext):
        stem = parent.output_stem(ctx)
        self.raw = stem + ".vcf"
        self.snp_filter_normal = stem + ".vcf.SNPfilter_normal"
        self.snp_filter = stem + ".vcf.SNPfilter"
        self.positions = self.snp_filter + ".pos"
        self.readcounts = stem + ".readcounts.rc"
        self.fp_pass = self.snp_filter + ".fp_pass"
        self.high_confidence = stem + "_hc.vcf"
        self.filtered = stem + "_filtered.vcf"


class SniperStepPart(BaseStepPart):
    """Base class for the SomaticSniper step parts"""

    #: Key of the resource block in ``somaticsniper.parameters``
    parameters_key: str = None

    def get_resources(self) -> ResourceUsage:
        params = getattr(self.config.somaticsniper.parameters, self.parameters_key)
        return stage_resources(params)

    def get_modules(self) -> list[str]:
        return [self.config.module("somaticsniper"), self.config.module("samtools")]

    def outputs(self, ctx: SampleContext) -> SniperOutputs:
        return SniperOutputs(self.parent, ctx)


class PileupStepPart(SniperStepPart):
    """Indel pileup of a normal or tumour BAM"""

    name = "run_pileup"
    phase = Phase.CALL
    sample_kinds = (SampleKind.NORMAL, SampleKind.TUMOUR)
    parameters_key = "pileup"

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.parent.pileup_path(ctx.patient_dir, ctx.sample))

    def get_command(self, ctx: SampleContext) -> str:
        output = self.parent.pileup_path(ctx.patient_dir, ctx.sample)
        params = PileupParams(reference=self.config.reference, bam=ctx.bam, output=output)
        return with_sentinel(build_command(CommandKind.PILEUP, params), output)

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        return [self.parent.pileup_path(ctx.patient_dir, ctx.sample)]


class SomaticSniperStepPart(SniperStepPart):
    name = "run_somaticsniper"
    phase = Phase.CALL
    parameters_key = "somaticsniper"

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.outputs(ctx).raw)

    def get_command(self, ctx: SampleContext) -> str:
        params = SomaticSniperParams(
            reference=self.config.reference,
            tumour=ctx.bam,
            normal=ctx.normal_bam,
            output_stem=self.parent.output_stem(ctx),
        )
        command = build_command(CommandKind.SOMATICSNIPER, params)
        return with_sentinel(command, self.outputs(ctx).raw)

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        return [self.outputs(ctx).raw]


class SnpFilterStepPart(SniperStepPart):
    name = "run_snpfilter"
    phase = Phase.FILTER
    parameters_key = "filter"

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.outputs(ctx).snp_filter)

    def get_command(self, ctx: SampleContext) -> str:
        outputs = self.outputs(ctx)
        params = SnpFilterParams(
            input=outputs.raw,
            normal_pileup=self.parent.pileup_path(ctx.patient_dir, ctx.normal),
            tumour_pileup=self.parent.pileup_path(ctx.patient_dir, ctx.sample),
            intermediate=outputs.snp_filter_normal,
            output=outputs.snp_filter,
        )
        return with_sentinel(build_command(CommandKind.SNP_FILTER, params), outputs.snp_filter)

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        outputs = self.outputs(ctx)
        return [outputs.snp_filter_normal, outputs.snp_filter]


class ReadcountStepPart(SniperStepPart):
    name = "run_readcount"
    phase = Phase.FILTER
    parameters_key = "readcount"

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.outputs(ctx).readcounts)

    def get_command(self, ctx: SampleContext) -> str:
        outputs = self.outputs(ctx)
        params = ReadcountParams(
            reference=self.config.reference,
            snp_filter=outputs.snp_filter,
            positions=outputs.positions,
            tumour=ctx.bam,
            output=outputs.readcounts,
        )
        return with_sentinel(build_command(CommandKind.READCOUNT, params), outputs.readcounts)

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        outputs = self.outputs(ctx)
        return [outputs.positions, outputs.readcounts]


class FpFilterStepPart(SniperStepPart):
    """False-positive and high-confidence filters"""

    name = "run_fpfilter"
    phase = Phase.FILTER
    parameters_key = "filter"

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.outputs(ctx).high_confidence)

    def get_command(self, ctx: SampleContext) -> str:
        outputs = self.outputs(ctx)
        params = FpFilterParams(
            snp_filter=outputs.snp_filter,
            readcounts=outputs.readcounts,
            output=outputs.high_confidence,
        )
        return with_sentinel(
            build_command(CommandKind.FP_FILTER, params), outputs.high_confidence
        )

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        outputs = self.outputs(ctx)
        return [outputs.fp_pass, outputs.snp_filter + ".fp_fail"]


class ExtraFilterStepPart(SniperStepPart):
    """Restrict calls to the target intervals and drop panel of normals positions"""

    name = "run_extra_filter"
    phase = Phase.FILTER
    parameters_key = "filter"

    def get_mode(self) -> typing.Optional[ExtraFilterMode]:
        return ExtraFilterMode.select(self.config.intervals_bed, self.config.somaticsniper.pon)

    def is_applicable(self, ctx: SampleContext) -> bool:
        return self.get_mode() is not None

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.outputs(ctx).filtered)

    def get_command(self, ctx: SampleContext) -> str:
        outputs = self.outputs(ctx)
        params = ExtraFilterParams(
            mode=self.get_mode(),
            input=outputs.high_confidence,
            output=outputs.filtered,
            intervals=self.config.intervals_bed,
            pon=self.config.somaticsniper.pon,
        )
        return with_sentinel(build_command(CommandKind.EXTRA_FILTER, params), outputs.filtered)

    def get_modules(self) -> list[str]:
        return [self.config.module("vcftools"), self.config.module("samtools"), "tabix"]


class SomaticSniperPipeline(CallingPipeline):
    """Paired calling with SomaticSniper"""

    name = "somaticsniper"
    tool_label = "SomaticSniper"

    step_part_classes = (
        BqsrStepPart,
        PileupStepPart,
        SomaticSniperStepPart,
        SnpFilterStepPart,
        ReadcountStepPart,
        FpFilterStepPart,
        ExtraFilterStepPart,
        AnnotateStepPart,
        PublishAnnotationStepPart,
    )

    def check_config(self):
        self.config.require("somaticsniper")
        self.config.module("somaticsniper")
        self.config.module("samtools")
        if self.config.intervals_bed or self.config.somaticsniper.pon:
            self.config.module("vcftools")

    def skip_patient_reason(self, patient: str, samples: PatientSamples) -> typing.Optional[str]:
        if not samples.normal:
            return "No normal BAM provided"
        if not samples.tumour:
            return "No tumour BAM provided"
        return None

    def pileup_path(self, patient_dir: str, sample: str) -> str:
        return os.path.join(patient_dir, f"{sample}_indel.pileup")

    def annotation_input(self, ctx: SampleContext) -> str:
        outputs = SniperOutputs(self, ctx)
        if ExtraFilterMode.select(self.config.intervals_bed, self.config.somaticsniper.pon):
            return outputs.filtered
        return outputs.high_confidence
