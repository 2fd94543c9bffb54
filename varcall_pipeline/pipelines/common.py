# -*- coding: utf-8 -*-
"""Step parts shared by the variant calling pipelines"""

import os

from ..commands import CommandKind, build_command
from ..commands.common import PublishParams, with_sentinel
from ..commands.gatk import BqsrParams
from ..commands.vcf2maf import Vcf2MafParams, vep_vcf_path
from ..config import SampleKind
from ..graph import BasePipeline, BaseStepPart, Phase, SampleContext, stage_resources
from ..oracle import md5_sentinel
from ..resource_usage import ResourceUsage


class CallingPipeline(BasePipeline):
    """Base class for the pipelines calling somatic variants per tumour sample"""

    #: Label of the caller in output file names
    tool_label: str = None

    def get_calling_bam(self, patient_dir: str, sample: str, input_bam: str) -> str:
        if self.config.bqsr:
            return os.path.join(patient_dir, f"{sample}_recalibrated.bam")
        return input_bam

    def output_stem(self, ctx: SampleContext) -> str:
        return ctx.path(f"_{self.tool_label}")

    def annotation_input(self, ctx: SampleContext) -> str:
        """Return the VCF handed to vcf2maf; override in sub classes"""
        raise NotImplementedError("Called abstract method. Override me!")  # pragma: no cover


class BqsrStepPart(BaseStepPart):
    """Base quality score recalibration with GATK, enabled by the ``bqsr`` section"""

    name = "run_bqsr"
    phase = Phase.ALIGN
    sample_kinds = (SampleKind.NORMAL, SampleKind.TUMOUR)

    def check_config(self):
        if self.config.bqsr:
            # resolves GATK3 vs GATK4 syntax, raises if gatk_version is missing
            self.config.tool_generation
            self.config.module("gatk")

    def is_applicable(self, ctx: SampleContext) -> bool:
        return self.config.bqsr is not None

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(ctx.bam)

    def get_command(self, ctx: SampleContext) -> str:
        params = BqsrParams(
            generation=self.config.tool_generation,
            reference=self.config.reference,
            input=ctx.input_bam,
            output=ctx.bam,
            recal_table=os.path.join(ctx.tmp_dir, f"{ctx.sample}.recal_data.grp"),
            java_mem=self.config.bqsr.parameters.java_mem,
            tmp_dir=ctx.tmp_dir,
            known_sites=[self.config.dbsnp] + list(self.config.bqsr.known_sites),
            intervals=self.config.intervals_bed,
        )
        return with_sentinel(build_command(CommandKind.BQSR, params), ctx.bam)

    def get_resources(self) -> ResourceUsage:
        return stage_resources(self.config.bqsr.parameters)

    def get_modules(self) -> list[str]:
        return [self.config.module("gatk")]


class AnnotationPaths:
    """Paths of the annotation outputs of a sample"""

    def __init__(self, parent: CallingPipeline, ctx: SampleContext):
        stem = parent.output_stem(ctx)
        #: Input VCF
        self.input = parent.annotation_input(ctx)
        #: Final MAF, its checksum is the sentinel of both annotation stages
        self.maf = stem + "_annotated.maf"
        #: Final VEP-annotated VCF, stored compressed
        self.vcf = stem + "_annotated.vcf"
        #: Tentative MAF as written by vcf2maf
        self.tmp_maf = os.path.join(ctx.tmp_dir, os.path.basename(self.maf))


class AnnotateStepPart(BaseStepPart):
    """First half of the annotation: run vcf2maf + VEP into the temporary directory"""

    name = "run_vcf2maf_and_vep"
    phase = Phase.ANNOTATE

    def check_config(self):
        self.config.require("annotate")
        self.config.module("samtools")

    def get_params(self, ctx: SampleContext) -> Vcf2MafParams:
        paths = AnnotationPaths(self.parent, ctx)
        annotate = self.config.annotate
        return Vcf2MafParams(
            build=self.config.reference_build,
            input=paths.input,
            reference=self.config.reference,
            tumour_id=ctx.sample,
            normal_id=ctx.normal,
            output=paths.tmp_maf,
            tmp_dir=ctx.tmp_dir,
            vcf2maf=annotate.vcf2maf_path,
            vep_path=annotate.vep_path,
            vep_data=annotate.vep_data,
            filter_vcf=annotate.filter_vcf,
            vep_forks=annotate.cpus,
        )

    def get_sentinel(self, ctx: SampleContext) -> str:
        return md5_sentinel(AnnotationPaths(self.parent, ctx).maf)

    def get_command(self, ctx: SampleContext) -> str:
        return build_command(CommandKind.VCF2MAF, self.get_params(ctx))

    def get_resources(self) -> ResourceUsage:
        annotate = self.config.annotate
        return ResourceUsage(threads=annotate.cpus, time=annotate.time, memory=annotate.mem)

    def get_modules(self) -> list[str]:
        return ["perl", self.config.module("samtools"), "tabix"]


class PublishAnnotationStepPart(AnnotateStepPart):
    """Second half of the annotation: publish the vcf2maf outputs if non-empty"""

    name = "publish_annotation"

    def get_command(self, ctx: SampleContext) -> str:
        paths = AnnotationPaths(self.parent, ctx)
        vep_vcf = vep_vcf_path(self.get_params(ctx))
        params = PublishParams(
            required_outputs=[paths.tmp_maf, vep_vcf],
            moves=[(paths.tmp_maf, paths.maf), (vep_vcf, paths.vcf)],
            compress=[paths.vcf],
            checksums=[paths.vcf + ".gz", paths.maf],
        )
        return build_command(CommandKind.PUBLISH, params)

    def get_resources(self) -> ResourceUsage:
        return ResourceUsage(threads=1, time="01:00:00", memory="1G")

    def get_modules(self) -> list[str]:
        return ["tabix"]

    def get_final_output(self, ctx: SampleContext) -> str:
        return AnnotationPaths(self.parent, ctx).maf
