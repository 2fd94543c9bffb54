# -*- coding: utf-8 -*-
"""Panel of normals creation with MuTect

Every normal sample is called in artifact detection mode and filtered.  Once all normals are
done, the filtered VCFs are merged with GATK3 CombineVariants twice: a full merge for combining
with other cohorts later, and a trimmed, sites-only merge of the sites seen in at least two
normals, which is the actual panel.  The trimmed panel is linked to
``<out_dir>/../panel_of_normals.vcf``.
"""

import logging
import os
import typing

from ..base import FilesystemError, MissingConfiguration
from ..commands import CommandKind, build_command
from ..commands.common import with_sentinel
from ..commands.mutect import (
    CombinePonParams,
    MutectMode,
    MutectParams,
    PonOutput,
    get_pon_header_fix_command,
)
from ..config import PatientSamples, SampleKind
from ..graph import BaseStepPart, CohortContext, Phase, RunState, SampleContext, stage_resources
from ..oracle import md5_sentinel
from ..resource_usage import ResourceUsage
from .common import BqsrStepPart, CallingPipeline
from .mutect import MutectFilterStepPart, MutectStepPart, mutect_reference

#: Name of the panel of normals link, next to the output directory
PON_LINK_NAME = "panel_of_normals.vcf"


class MutectArtifactStepPart(MutectStepPart):
    """Call a normal sample in artifact detection mode"""

    sample_kinds = (SampleKind.NORMAL,)

    def get_command(self, ctx: SampleContext) -> str:
        stem = self.parent.output_stem(ctx)
        params = MutectParams(
            mode=MutectMode.ARTIFACT_DETECTION,
            resources=mutect_reference(self.config),
            tumour=ctx.bam,
            tumour_id=ctx.sample,
            output_stem=stem,
            java_mem=self.config.mutect.parameters.mutect.java_mem,
            tmp_dir=ctx.tmp_dir,
        )
        return with_sentinel(build_command(CommandKind.MUTECT, params), stem + ".vcf")

    def get_temporary_files(self, ctx: SampleContext) -> list[str]:
        stem = self.parent.output_stem(ctx)
        return [stem + ".vcf", stem + ".vcf.idx"]


class CombinePonStepPart(BaseStepPart):
    """Merge the filtered normal VCFs into a panel of normals"""

    phase = Phase.COLLATE
    sample_kinds = ()
    rebuild_on_new_input = True

    def __init__(self, parent, out_type: PonOutput):
        super().__init__(parent)
        self.out_type = PonOutput(out_type)
        if self.out_type == PonOutput.FULL:
            self.name = "run_combine_vcfs_full_output"
        else:
            self.name = "run_combine_vcfs_and_trim"

    def check_config(self):
        if self.config.mutect.parameters.combine is None:
            raise MissingConfiguration(
                "configuration key 'mutect.parameters.combine' is required for a panel of normals"
            )
        self.config.module("gatk")

    def is_applicable(self, ctx: CohortContext) -> bool:
        return any(sample.kind == SampleKind.NORMAL for sample in ctx.samples)

    def get_stage_name(self, ctx: CohortContext) -> str:
        return self.name

    def get_output(self, ctx: CohortContext) -> str:
        return self.parent.pon_path(self.out_type)

    def get_sentinel(self, ctx: CohortContext) -> str:
        if self.out_type == PonOutput.FULL:
            return md5_sentinel(self.get_output(ctx) + ".gz")
        return md5_sentinel(self.get_output(ctx))

    def get_command(self, ctx: CohortContext) -> str:
        output = self.get_output(ctx)
        params = CombinePonParams(
            reference=self.config.reference,
            inputs=[
                (sample.sample, self.parent.filtered_vcf(sample))
                for sample in ctx.samples
                if sample.kind == SampleKind.NORMAL
            ],
            output=output,
            java_mem=self.config.mutect.parameters.combine.java_mem,
            tmp_dir=ctx.tmp_dir,
            out_type=self.out_type,
        )
        cmd = build_command(CommandKind.COMBINE_PON, params)
        if self.out_type == PonOutput.FULL:
            return with_sentinel("\n\n".join([cmd, f"bgzip -f {output}"]), output + ".gz")
        return with_sentinel("\n\n".join([cmd, get_pon_header_fix_command(output)]), output)

    def get_resources(self) -> ResourceUsage:
        return stage_resources(self.config.mutect.parameters.combine)

    def get_modules(self) -> list[str]:
        return [self.config.module("gatk"), "tabix"]


class MutectPonPipeline(CallingPipeline):
    """Create a panel of normals from all normal samples"""

    name = "mutect_pon"
    tool_label = "MuTect"

    sample_kinds = (SampleKind.NORMAL,)
    collate = False

    step_part_classes = (
        BqsrStepPart,
        MutectArtifactStepPart,
        (MutectFilterStepPart, ((SampleKind.NORMAL,), True)),
    )

    cohort_part_classes = (
        (CombinePonStepPart, (PonOutput.FULL,)),
        (CombinePonStepPart, (PonOutput.TRIMMED,)),
    )

    def check_config(self):
        self.config.require("mutect")

    def skip_patient_reason(self, patient: str, samples: PatientSamples) -> typing.Optional[str]:
        if not samples.normal:
            return "No normal BAM provided"
        return None

    def filtered_vcf(self, ctx: SampleContext) -> str:
        return self.output_stem(ctx) + "_filtered.vcf"

    def pon_path(self, out_type: PonOutput) -> str:
        if PonOutput(out_type) == PonOutput.FULL:
            return os.path.join(self.out_dir, "merged_panel_of_normals.vcf")
        return os.path.join(self.out_dir, "merged_panel_of_normals_trimmed.vcf")

    @property
    def pon_link(self) -> str:
        return os.path.join(os.path.dirname(os.path.abspath(self.out_dir)), PON_LINK_NAME)

    def finalize(self, state: RunState, dry_run: bool):
        pon = self.pon_path(PonOutput.TRIMMED)
        if not dry_run:
            try:
                if os.path.islink(self.pon_link):
                    os.unlink(self.pon_link)
                os.symlink(os.path.abspath(pon), self.pon_link)
            except OSError as e:
                raise FilesystemError(f"could not link panel of normals: {e}") from e
        logging.getLogger(__name__).info("FINAL OUTPUT: %s", self.pon_link)
