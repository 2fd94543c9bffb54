# -*- coding: utf-8 -*-
"""Shared fixtures for the varcall_pipeline unit tests"""

import textwrap

import pytest
import ruamel.yaml as ruamel_yaml

from varcall_pipeline.config import parse_sample_manifest, parse_tool_config
from varcall_pipeline.graph import PipelineGraphBuilder
from varcall_pipeline.jobs import JobHandle, ScriptWriter
from varcall_pipeline.scheduler import Scheduler


class FakeScheduler(Scheduler):
    """Scheduler handing out increasing job IDs and replaying a list of job states"""

    name = "fake"

    def __init__(self, states=(), first_id=1001):
        super().__init__()
        #: Stages passed to the back end, in submission order
        self.submitted = []
        #: States returned by ``poll``, in order
        self.states = list(states)
        #: Handles passed to ``poll``
        self.polled = []
        self.next_id = first_id

    def script_directives(self, stage, log_path):
        return [f"#FAKE --job-name={stage.name}", f"#FAKE --output={log_path}"]

    def format_dependencies(self, handles, kill_on_error=True):
        return [handle.job_id for handle in handles if not handle.is_dry_run]

    def _submit(self, script, stage):
        self.submitted.append(stage)
        handle = JobHandle(str(self.next_id))
        self.next_id += 1
        return handle

    def poll(self, handle):
        self.polled.append(handle)
        return self.states.pop(0)

    def job_metrics_command(self, handles, outfile):
        return "metrics {} > {}".format(",".join(h.job_id for h in handles), outfile)

    @property
    def stages(self):
        """Submitted stages by name"""
        return {stage.name: stage for stage in self.submitted}


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def scheduler_factory():
    """Return constructor of fake schedulers replaying the given job states"""
    return FakeScheduler


@pytest.fixture
def work_dir():
    """Return output directory string for overall consistency in tests"""
    return "/work/out"


@pytest.fixture
def tool_config_yaml():
    """Return tool configuration YAML with all pipeline sections"""
    return textwrap.dedent(
        r"""
        project_name: PROJ-001
        reference: /ref/hg38.fa
        ref_type: hg38
        mutect_version: 1.1.5
        gatk_version: 3.8
        vcftools_version: 0.1.15
        samtools_version: 1.9
        somaticsniper_version: 1.0.5
        r_version: 3.6.1

        mutect:
          parameters:
            mutect: {time: "24:00:00", mem: 4G, java_mem: 3g}
            filter: {time: "04:00:00", mem: 1G}
            combine: {time: "08:00:00", mem: 8G, java_mem: 6g}

        somaticsniper:
          parameters:
            somaticsniper: {time: "12:00:00", mem: 4G}
            pileup: {time: "12:00:00", mem: 2G}
            readcount: {time: "08:00:00", mem: 2G}
            filter: {time: "02:00:00", mem: 1G}

        annotate:
          vcf2maf_path: /opt/vcf2maf/vcf2maf.pl
          vep_path: /opt/vep
          vep_data: /data/vep
          time: "12:00:00"
          mem: 16G
        """
    ).lstrip()


@pytest.fixture
def tool_config_dict(tool_config_yaml):
    """Return YAML parsing result for the tool configuration"""
    yaml = ruamel_yaml.YAML(typ="safe")
    return yaml.load(tool_config_yaml)


@pytest.fixture
def tool_config(tool_config_dict):
    return parse_tool_config(tool_config_dict)


@pytest.fixture
def sample_manifest_dict():
    """One patient with a normal and two tumours"""
    return {
        "P1": {
            "normal": {"P1-N": "/data/P1-N.bam"},
            "tumour": {"P1-T1": "/data/P1-T1.bam", "P1-T2": "/data/P1-T2.bam"},
        }
    }


@pytest.fixture
def run_builder(fs, fake_scheduler):
    """Return function building the job graph of a pipeline against ``fake_scheduler``"""

    def run(pipeline, manifest_dict, dry_run=False, remove=False, dependencies=(), run_index=1):
        label = "dry_run" if dry_run else f"run_{run_index}"
        writer = ScriptWriter(pipeline.log_dir, fake_scheduler, label)
        builder = PipelineGraphBuilder(
            pipeline,
            writer,
            fake_scheduler,
            dry_run=dry_run,
            initial_dependencies=[JobHandle(job_id) for job_id in dependencies],
            remove=remove,
        )
        manifest = parse_sample_manifest(manifest_dict)
        return builder.build(manifest, run_index=None if dry_run else run_index)

    return run


@pytest.fixture
def touch(fs):
    """Return function creating a non-empty checksum file in the fake file system"""

    def create(path):
        fs.create_file(path, contents="d41d8cd98f00b204e9800998ecf8427e  file\n")

    return create
