# -*- coding: utf-8 -*-
"""Somatic SNV calling with MuTect

Tumours are called against the first normal of the patient.  If a panel of normals is
configured, tumours of patients without a normal are called in tumour-only mode; without a
panel of normals such patients are skipped.

Per tumour, the stages are:

- ``run_bqsr`` (optional, also run for the normal)
- ``run_mutect``
- ``run_vcf_filter``: drop ``REJECT`` calls
- ``run_vcf2maf_and_vep`` + ``publish_annotation``
"""

import typing

from ..commands import CommandKind, build_command
from ..commands.common import VcfFilterParams, with_sentinel
from ..commands.mutect import MutectMode, MutectParams, MutectReference
from ..config import PatientSamples, SampleKind
from ..graph import BaseStepPart, Phase, SampleContext, stage_resources
from ..oracle import md5_sentinel
from ..resource_usage import ResourceUsage
from .common import AnnotateStepPart, BqsrStepPart, CallingPipeline, PublishAnnotationStepPart


def mutect_reference(config) -> MutectReference:
    return MutectReference(
        reference=config.reference,
        dbsnp=config.dbsnp,
        cosmic=config.cosmic,
        intervals=config.intervals_bed,
    )


class MutectStepPart(BaseStepPart):
    """Call somatic SNVs of a tumour, paired or tumour-only"""

    name = "run_mutect"
    phase = Phase.CALL

    def check_config(self):
        self.config.module("mutect")

    def get_mode(self, ctx: SampleContext) -> MutectMode:
        return MutectMode.PAIRED if ctx.normal else MutectMode.TUMOUR_ONLY

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.parent.output_stem(ctx) + ".vcf")

    def get_command(self, ctx: SampleContext) -> str:
        stem = self.parent.output_stem(ctx)
        params = MutectParams(
            mode=self.get_mode(ctx),
            resources=mutect_reference(self.config),
            tumour=ctx.bam,
            tumour_id=ctx.sample,
            normal=ctx.normal_bam,
            normal_id=ctx.normal,
            pon=self.parent.pon,
            output_stem=stem,
            java_mem=self.config.mutect.parameters.mutect.java_mem,
            tmp_dir=ctx.tmp_dir,
        )
        return with_sentinel(build_command(CommandKind.MUTECT, params), stem + ".vcf")

    def get_resources(self) -> ResourceUsage:
        return stage_resources(self.config.mutect.parameters.mutect)

    def get_modules(self) -> list[str]:
        return [self.config.module("mutect")]

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        stem = self.parent.output_stem(ctx)
        return [stem + ".vcf", stem + ".vcf.idx", stem + ".stats"]


class MutectFilterStepPart(BaseStepPart):
    """Remove ``REJECT`` calls with vcftools

    With ``final=True``, the filtered VCF is the sample's final output.
    """

    name = "run_vcf_filter"
    phase = Phase.FILTER

    def __init__(self, parent, sample_kinds=(SampleKind.TUMOUR,), final=False):
        super().__init__(parent)
        self.sample_kinds = tuple(sample_kinds)
        self.final = final

    def check_config(self):
        self.config.module("vcftools")

    def get_output(self, ctx: SampleContext) -> str:
        return self.parent.output_stem(ctx) + "_filtered.vcf"

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(self.get_output(ctx))

    def get_command(self, ctx: SampleContext) -> str:
        params = VcfFilterParams(
            input=self.parent.output_stem(ctx) + ".vcf",
            output=self.get_output(ctx),
            tmp_dir=ctx.tmp_dir,
        )
        return with_sentinel(build_command(CommandKind.VCF_FILTER, params), self.get_output(ctx))

    def get_resources(self) -> ResourceUsage:
        return stage_resources(self.config.mutect.parameters.filter)

    def get_modules(self) -> list[str]:
        return [self.config.module("vcftools")]

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        return [] if self.final else [self.get_output(ctx)]

    def get_final_output(self, ctx: SampleContext) -> typing.Optional[str]:
        return self.get_output(ctx) if self.final else None


class MutectPipeline(CallingPipeline):
    """Paired and tumour-only MuTect calling"""

    name = "mutect"
    tool_label = "MuTect"

    step_part_classes = (
        BqsrStepPart,
        MutectStepPart,
        MutectFilterStepPart,
        AnnotateStepPart,
        PublishAnnotationStepPart,
    )

    def __init__(self, config, out_dir: str, pon: typing.Optional[str] = None):
        #: Panel of normals, from the command line or the configuration
        self.pon = pon or (config.mutect.pon if config.mutect else None)
        super().__init__(config, out_dir)

    def check_config(self):
        self.config.require("mutect")

    def skip_patient_reason(self, patient: str, samples: PatientSamples) -> typing.Optional[str]:
        if not samples.tumour:
            return "No tumour BAM provided"
        if not samples.normal and not self.pon:
            return "No normal BAM and no panel of normals provided"
        return None

    def annotation_input(self, ctx: SampleContext) -> str:
        return self.output_stem(ctx) + "_filtered.vcf"
