# -*- coding: utf-8 -*-
"""Pipeline graph construction

A pipeline is made up of step parts, each contributing one stage per sample.  The
:py:class:`PipelineGraphBuilder` walks the sample manifest patient by patient, asks the completion
oracle for each stage whether it already ran, and submits the missing stages with dependencies
on the previously submitted stage of the same sample.

Per patient, the normal samples are processed first.  The handles of the stages submitted for the
normals, together with the initial dependencies, form the patient's anchor which every tumour
stage depends on.  Within a sample, a submitted stage becomes the predecessor of the next one
while a skipped stage leaves the predecessor unchanged.
"""

import enum
import logging
import os
import shutil
import typing

import attr

from . import oracle
from .base import FilesystemError, InvalidConfiguration
from .commands import CommandKind, build_command
from .commands.collate import CollateParams
from .commands.common import CleanupParams
from .config import PatientSamples, SampleKind, SampleManifest, ToolConfig
from .jobs import JobHandle, ScriptWriter
from .models import StageParameters
from .resource_usage import BOOKKEEPING_RESOURCES, COLLATE_RESOURCES, ResourceUsage
from .utils import listify, unique


class Phase(enum.IntEnum):
    """Processing phases, in execution order"""

    ALIGN = 1
    CALL = 2
    FILTER = 3
    ANNOTATE = 4
    COLLATE = 5


class StageStatus(enum.StrEnum):
    """Status of a stage as far as the graph builder sees it"""

    NOT_STARTED = "not_started"
    SKIPPED = "skipped"
    SUBMITTED = "submitted"


@attr.s(frozen=True, auto_attribs=True)
class SampleContext:
    """Everything a step part needs to know about the sample it builds a stage for"""

    patient: str
    sample: str
    kind: SampleKind
    #: Directory for the patient's outputs
    patient_dir: str
    #: Per-patient directory for temporary files
    tmp_dir: str
    #: Input BAM, as linked into ``bam_links``
    input_bam: str
    #: BAM used for calling, differs from ``input_bam`` if recalibration is enabled
    bam: str
    #: First normal sample of the patient, if any
    normal: typing.Optional[str] = None
    #: Calling BAM of ``normal``
    normal_bam: typing.Optional[str] = None

    def path(self, suffix: str) -> str:
        """Return ``<patient_dir>/<sample><suffix>``"""
        return os.path.join(self.patient_dir, self.sample + suffix)


@attr.s(frozen=True, auto_attribs=True)
class CohortContext:
    """Input of the cohort-level stages run after all patients"""

    out_dir: str
    tmp_dir: str
    samples: tuple[SampleContext, ...] = attr.ib(converter=tuple)


@attr.s(auto_attribs=True)
class RunState:
    """Accumulator for the jobs of one pipeline invocation"""

    #: Run index of this invocation, ``None`` for dry runs
    run_index: typing.Optional[int] = None
    #: Handles of all submitted pipeline stages, ordered and without duplicates
    all_jobs: list[JobHandle] = attr.Factory(list)
    #: Handles of submitted pipeline stages, by patient
    patient_jobs: dict[str, list[JobHandle]] = attr.Factory(dict)
    #: Handles of the cleanup and collation stages
    fan_in_jobs: list[JobHandle] = attr.Factory(list)
    #: Status of every stage considered, by stage name
    stage_status: dict[str, StageStatus] = attr.Factory(dict)
    #: Handle of every submitted stage, by stage name
    stage_jobs: dict[str, JobHandle] = attr.Factory(dict)
    #: Final outputs, by patient
    final_outputs: dict[str, list[str]] = attr.Factory(dict)
    #: Contexts of all samples processed
    contexts: list[SampleContext] = attr.Factory(list)
    #: Handle of the job metrics stage, submitted last
    metrics_job: typing.Optional[JobHandle] = None

    def claim_name(self, name: str):
        """Register stage ``name``, which must be unique within the run"""
        if name in self.stage_status:
            raise InvalidConfiguration(f"stage name {name!r} is used twice, check sample IDs")
        self.stage_status[name] = StageStatus.NOT_STARTED

    def record_skipped(self, name: str):
        """Mark stage ``name`` as skipped, its outputs being complete"""
        self.stage_status[name] = StageStatus.SKIPPED

    def record_submitted(
        self,
        name: str,
        handle: JobHandle,
        patient: typing.Optional[str] = None,
        fan_in: bool = False,
    ):
        """Record submission of stage ``name``

        Fan-in stages go to ``fan_in_jobs`` only; all other stages go to ``all_jobs`` and, if
        ``patient`` is given, to that patient's jobs.
        """
        self.stage_status[name] = StageStatus.SUBMITTED
        self.stage_jobs[name] = handle
        if fan_in:
            self.fan_in_jobs.append(handle)
            return
        if handle not in self.all_jobs:
            self.all_jobs.append(handle)
        if patient is not None:
            jobs = self.patient_jobs.setdefault(patient, [])
            if handle not in jobs:
                jobs.append(handle)

    @property
    def submitted(self) -> list[str]:
        """Names of the submitted stages"""
        return [k for k, v in self.stage_status.items() if v == StageStatus.SUBMITTED]

    @property
    def skipped(self) -> list[str]:
        return [k for k, v in self.stage_status.items() if v == StageStatus.SKIPPED]


def stage_resources(params: StageParameters) -> ResourceUsage:
    """Convert a configured resource block into ``ResourceUsage``"""
    return ResourceUsage(threads=params.cpus, time=params.time, memory=params.mem)


class BaseStepPart:
    """Base class for a part of a pipeline, yields one stage per sample"""

    #: Step part name, prefix of the stage names
    name = "<base step>"

    #: Phase the stages belong to
    phase = Phase.CALL

    #: Kinds of samples the part builds stages for
    sample_kinds: tuple[SampleKind, ...] = (SampleKind.TUMOUR,)

    #: Cohort parts only: rebuild the output if any stage before it was submitted in this run
    rebuild_on_new_input: bool = False

    def __init__(self, parent: "BasePipeline"):
        self.name = self.__class__.name
        self.parent = parent
        self.config: ToolConfig = parent.config

    def check_config(self):
        """Check configuration, raise ``MissingConfiguration`` on problems

        Override in sub classes.
        """

    def is_applicable(self, ctx) -> bool:
        """Whether the part has to build a stage for ``ctx``"""
        return True

    def get_stage_name(self, ctx) -> str:
        return f"{self.name}_{ctx.sample}"

    def get_sentinel(self, ctx) -> str:
        """Return path of the file marking completion of the stage"""
        raise NotImplementedError("Called abstract method. Override me!")  # pragma: no cover

    def get_command(self, ctx) -> str:
        raise NotImplementedError("Called abstract method. Override me!")  # pragma: no cover

    def get_resources(self) -> ResourceUsage:
        raise NotImplementedError("Called abstract method. Override me!")  # pragma: no cover

    def get_modules(self) -> list[str]:
        return []

    def get_temporary_files(self, ctx) -> list[str]:
        """Intermediate files removed by the cleanup stage"""
        return []

    def get_final_output(self, ctx) -> typing.Optional[str]:
        """Final output of the sample, if this part produces it"""
        return None


class BasePipeline:
    """Base class for the pipelines

    Sub classes register their step parts in ``step_part_classes``; entries are either classes or
    ``(class, args)`` pairs.
    """

    #: Pipeline name, used for the log directory and file names
    name: str = None

    #: Step part classes for the per-sample stages
    step_part_classes: tuple = ()

    #: Step part classes for the cohort stages, run after all patients
    cohort_part_classes: tuple = ()

    #: Sample kinds processed; normals are always processed first
    sample_kinds: tuple[SampleKind, ...] = (SampleKind.NORMAL, SampleKind.TUMOUR)

    #: Whether to collate all outputs with the R script at the end
    collate: bool = True

    def __init__(self, config: ToolConfig, out_dir: str):
        self.config = config
        self.out_dir = out_dir
        self.logger = logging.getLogger(__name__)
        self.check_config()
        if self.collate:
            self.config.module("R", "r_version")
        self.sub_steps: dict[str, BaseStepPart] = {}
        self.register_sub_step_classes(self.step_part_classes)
        self.cohort_steps = [self._make_part(entry) for entry in self.cohort_part_classes]
        for step in self.cohort_steps:
            step.check_config()

    def check_config(self):
        """Check ``self.config``, raise ``MissingConfiguration`` on problems

        Override in sub classes.
        """

    def _make_part(self, pair_or_class) -> BaseStepPart:
        try:
            klass, args = pair_or_class
        except TypeError:
            klass = pair_or_class
            args = ()
        return klass(self, *args)

    def register_sub_step_classes(self, classes):
        """Register an iterable of step part classes"""
        for pair_or_class in classes:
            obj = self._make_part(pair_or_class)
            obj.check_config()
            self.sub_steps[obj.name] = obj

    def parts_for(self, kind: SampleKind) -> list[BaseStepPart]:
        """Step parts building stages for ``kind`` samples, in phase order"""
        return sorted(
            (part for part in self.sub_steps.values() if kind in part.sample_kinds),
            key=lambda part: part.phase,
        )

    def skip_patient_reason(self, patient: str, samples: PatientSamples) -> typing.Optional[str]:
        """Return reason for not processing ``patient`` at all, ``None`` to process it"""
        return None

    def get_calling_bam(self, patient_dir: str, sample: str, input_bam: str) -> str:
        """Return the BAM used for calling; recalibrating pipelines override this"""
        return input_bam

    def finalize(self, state: RunState, dry_run: bool):
        """Hook called after all stages have been built"""

    @property
    def log_dir(self) -> str:
        return os.path.join(self.out_dir, "logs", f"run_{self.name}_pipeline")


def _makedirs(path: str):
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"could not create directory {path}: {e}") from e


def _link(src: str, dest: str):
    """Create symlink ``dest`` to ``src``, replacing an older link"""
    try:
        if os.path.islink(dest):
            os.unlink(dest)
        os.symlink(src, dest)
    except OSError as e:
        raise FilesystemError(f"could not create symlink {dest}: {e}") from e


class PipelineGraphBuilder:
    """Build and submit the stages of ``pipeline`` for a sample manifest"""

    def __init__(
        self,
        pipeline: BasePipeline,
        writer: ScriptWriter,
        scheduler,
        dry_run: bool = False,
        initial_dependencies: typing.Iterable[JobHandle] = (),
        remove: bool = False,
    ):
        self.pipeline = pipeline
        self.config = pipeline.config
        self.writer = writer
        self.scheduler = scheduler
        self.dry_run = dry_run
        #: Handles every stage of every patient depends on, e.g., an upstream job
        self.initial_dependencies = unique(initial_dependencies)
        #: Whether to submit the per-patient cleanup stages
        self.remove = remove
        self.logger = logging.getLogger(__name__)

    def build(self, manifest: SampleManifest, run_index: typing.Optional[int] = None) -> RunState:
        state = RunState(run_index=run_index)
        for patient, samples in manifest.sorted_patients():
            self.build_patient(state, patient, samples)
        self.build_cohort(state)
        if self.pipeline.collate:
            self.build_collate(state)
        self.pipeline.finalize(state, self.dry_run)
        self.logger.info(
            "%d stage(s) submitted, %d skipped as already completed",
            len(state.submitted),
            len(state.skipped),
        )
        return state

    def run_stage(
        self,
        state: RunState,
        name: str,
        command: str,
        resources: ResourceUsage,
        dependencies: typing.Iterable[JobHandle],
        modules: typing.Iterable[str] = (),
        sentinel: typing.Optional[str] = None,
        kill_on_error: bool = True,
        patient: typing.Optional[str] = None,
        fan_in: bool = False,
        force: bool = False,
    ) -> typing.Optional[JobHandle]:
        """Submit stage unless its sentinel marks it as completed

        With ``force``, the stage is submitted even if completed.  Return the new handle or
        ``None`` if the stage was skipped.
        """
        state.claim_name(name)
        if force:
            self.logger.info("Rebuilding %s because its inputs are regenerated", name)
        elif sentinel is not None and oracle.is_complete(sentinel):
            self.logger.info("Skipping %s because this has already been completed", name)
            state.record_skipped(name)
            return None
        try:
            stage = self.writer.make_job(
                name,
                command,
                resources,
                dependencies=dependencies,
                modules=modules,
                sentinel=sentinel,
                kill_on_error=kill_on_error,
            )
        except ValueError as e:
            raise InvalidConfiguration(f"cannot create job {name!r}: {e}") from e
        script = self.writer.write(stage)
        self.logger.info("Submitting job for %s", name)
        handle = self.scheduler.submit(script, stage, dry_run=self.dry_run)
        state.record_submitted(name, handle, patient, fan_in=fan_in)
        return handle

    def run_part(
        self,
        state: RunState,
        part: BaseStepPart,
        ctx,
        dependencies: typing.Iterable[JobHandle],
        patient: typing.Optional[str] = None,
        force: bool = False,
    ) -> typing.Optional[JobHandle]:
        name = part.get_stage_name(ctx)
        try:
            command = part.get_command(ctx)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"cannot build command of {name}: {e}") from e
        return self.run_stage(
            state,
            name,
            command,
            part.get_resources(),
            dependencies,
            modules=part.get_modules(),
            sentinel=part.get_sentinel(ctx),
            patient=patient,
            force=force,
        )

    def build_patient(self, state: RunState, patient: str, samples: PatientSamples):
        self.logger.info("Initiating process for PATIENT: %s", patient)
        reason = self.pipeline.skip_patient_reason(patient, samples)
        if reason:
            self.logger.info("%s; skipping patient %s", reason, patient)
            return
        patient_dir = os.path.join(self.pipeline.out_dir, patient)
        tmp_dir = os.path.join(patient_dir, "TEMP")
        link_dir = os.path.join(patient_dir, "bam_links")
        for path in (patient_dir, tmp_dir, link_dir):
            _makedirs(path)

        contexts = self._sample_contexts(patient, samples, patient_dir, tmp_dir, link_dir)
        state.final_outputs[patient] = []
        temporary = [tmp_dir]

        anchor = list(self.initial_dependencies)
        shared = []
        for kind in (SampleKind.NORMAL, SampleKind.TUMOUR):
            if kind not in self.pipeline.sample_kinds:
                continue
            for ctx in (c for c in contexts if c.kind == kind):
                self.logger.info("  SAMPLE: %s", ctx.sample)
                state.contexts.append(ctx)
                submitted = self.build_sample(state, ctx, anchor, temporary)
                if kind == SampleKind.NORMAL:
                    shared += submitted
            if kind == SampleKind.NORMAL:
                anchor = unique(anchor + shared)

        if self.remove:
            self.build_cleanup(state, patient, tmp_dir, temporary)
        self.logger.info(
            "FINAL OUTPUT:\n  %s", "\n  ".join(state.final_outputs[patient]) or "<none>"
        )

    @listify
    def _sample_contexts(self, patient, samples, patient_dir, tmp_dir, link_dir):
        calling_bams = {}
        for sample in samples.normal_ids + samples.tumour_ids:
            link = os.path.join(link_dir, os.path.basename(samples.bam(sample)))
            _link(samples.bam(sample), link)
            calling_bams[sample] = (link, self.pipeline.get_calling_bam(patient_dir, sample, link))
        normal = samples.normal_ids[0] if samples.normal_ids else None
        for kind, sample_ids in (
            (SampleKind.NORMAL, samples.normal_ids),
            (SampleKind.TUMOUR, samples.tumour_ids),
        ):
            for sample in sample_ids:
                input_bam, bam = calling_bams[sample]
                yield SampleContext(
                    patient=patient,
                    sample=sample,
                    kind=kind,
                    patient_dir=patient_dir,
                    tmp_dir=tmp_dir,
                    input_bam=input_bam,
                    bam=bam,
                    normal=normal if kind == SampleKind.TUMOUR else None,
                    normal_bam=(
                        calling_bams[normal][1] if kind == SampleKind.TUMOUR and normal else None
                    ),
                )

    def build_sample(
        self,
        state: RunState,
        ctx: SampleContext,
        anchor: list[JobHandle],
        temporary: list[str],
    ) -> list[JobHandle]:
        """Build the chain of stages for one sample, return the submitted handles"""
        prior = list(anchor)
        submitted = []
        for part in self.pipeline.parts_for(ctx.kind):
            if not part.is_applicable(ctx):
                continue
            temporary += part.get_temporary_files(ctx)
            final_output = part.get_final_output(ctx)
            if final_output:
                state.final_outputs[ctx.patient].append(final_output)
            handle = self.run_part(state, part, ctx, unique(prior + anchor), ctx.patient)
            if handle is not None:
                prior = [handle]
                submitted.append(handle)
        return submitted

    def build_cleanup(self, state: RunState, patient: str, tmp_dir: str, temporary: list[str]):
        """Remove temporary files of ``patient`` once its final outputs are complete"""
        patient_jobs = state.patient_jobs.get(patient, [])
        if not patient_jobs:
            if not self.dry_run:
                self.logger.info("Nothing submitted for %s, removing %s", patient, tmp_dir)
                shutil.rmtree(tmp_dir, ignore_errors=True)
            return
        self.logger.info("Submitting job to clean up temporary/intermediate files...")
        params = CleanupParams(
            paths=unique(temporary),
            final_sentinels=[oracle.md5_sentinel(p) for p in state.final_outputs[patient]],
        )
        self.run_stage(
            state,
            f"run_cleanup_{patient}",
            build_command(CommandKind.CLEANUP, params),
            BOOKKEEPING_RESOURCES,
            patient_jobs,
            kill_on_error=False,
            fan_in=True,
        )

    def build_cohort(self, state: RunState):
        """Build cohort-level stages, each depending on all jobs submitted so far

        Parts with ``rebuild_on_new_input`` are resubmitted whenever any stage before them was
        submitted, so that their outputs include new samples.
        """
        if not self.pipeline.cohort_steps:
            return
        tmp_dir = os.path.join(self.pipeline.out_dir, "TEMP")
        _makedirs(tmp_dir)
        ctx = CohortContext(out_dir=self.pipeline.out_dir, tmp_dir=tmp_dir, samples=state.contexts)
        for part in self.pipeline.cohort_steps:
            if part.is_applicable(ctx):
                force = part.rebuild_on_new_input and bool(state.all_jobs)
                self.run_part(state, part, ctx, list(state.all_jobs), force=force)
            else:
                self.logger.info("Nothing to do for %s", part.name)

    def build_collate(self, state: RunState):
        params = CollateParams(
            script=self.config.collate_script,
            output_dir=self.pipeline.out_dir,
            project_name=self.config.project_name,
        )
        self.run_stage(
            state,
            "combine_variant_calls",
            build_command(CommandKind.COLLATE, params),
            COLLATE_RESOURCES,
            list(state.all_jobs),
            modules=[self.config.module("R", "r_version")],
            kill_on_error=False,
            fan_in=True,
        )
