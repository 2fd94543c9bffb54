# -*- coding: utf-8 -*-
"""Tests for the run controller"""

import logging
import os
import textwrap

import pytest

from varcall_pipeline.base import (
    FilesystemError,
    InvalidConfiguration,
    StageFailure,
    TransientPollError,
)
from varcall_pipeline.controller import (
    MAX_TIMEOUTS,
    RunController,
    claim_run_index,
    wait_for_completion,
)
from varcall_pipeline.jobs import DRY_RUN_HANDLE, JobHandle
from varcall_pipeline.pipelines import MutectPipeline
from varcall_pipeline.scheduler import JobState

LOG_DIR = "/work/out/logs/run_mutect_pipeline"


def no_sleep(seconds):
    pass


@pytest.fixture
def config_files(fs, tool_config_yaml):
    fs.create_file("/work/tool_config.yaml", contents=tool_config_yaml)
    fs.create_file(
        "/work/data_config.yaml",
        contents=textwrap.dedent(
            """
            P1:
              normal:
                P1-N: /data/P1-N.bam
              tumour:
                P1-T1: /data/P1-T1.bam
            """
        ),
    )


@pytest.fixture
def make_controller(config_files, work_dir):
    def make(scheduler, **kwargs):
        return RunController(
            MutectPipeline,
            tool_config_path="/work/tool_config.yaml",
            data_config_path="/work/data_config.yaml",
            out_dir=work_dir,
            scheduler=scheduler,
            sleep=no_sleep,
            **kwargs,
        )

    return make


def test_claim_run_index(fs):
    fs.create_dir(LOG_DIR)
    assert claim_run_index(LOG_DIR) == 1
    assert os.path.exists(os.path.join(LOG_DIR, "slurm_job_metrics_1.out"))
    assert claim_run_index(LOG_DIR) == 2
    assert claim_run_index(LOG_DIR) == 3


def test_claim_run_index_skips_used(fs):
    fs.create_file(os.path.join(LOG_DIR, "slurm_job_metrics_1.out"))
    fs.create_file(os.path.join(LOG_DIR, "slurm_job_metrics_3.out"))
    assert claim_run_index(LOG_DIR) == 4
    assert claim_run_index(LOG_DIR) == 5


def test_claim_requested_run_index(fs):
    fs.create_file(os.path.join(LOG_DIR, "slurm_job_metrics_2.out"))
    assert claim_run_index(LOG_DIR, 7) == 7
    with pytest.raises(FilesystemError):
        claim_run_index(LOG_DIR, 2)
    with pytest.raises(InvalidConfiguration):
        claim_run_index(LOG_DIR, 0)


def test_claim_run_index_missing_dir(fs):
    with pytest.raises(FilesystemError):
        claim_run_index(LOG_DIR)


def test_wait_for_completion(scheduler_factory):
    slept = []
    scheduler = scheduler_factory(states=[JobState.PENDING, JobState.RUNNING, JobState.COMPLETED])
    wait_for_completion(scheduler, JobHandle("9"), interval=30, sleep=slept.append)
    assert slept == [30, 30, 30]
    assert scheduler.polled == [JobHandle("9")] * 3


def test_wait_gives_up_after_consecutive_timeouts(scheduler_factory):
    scheduler = scheduler_factory(states=[JobState.UNKNOWN] * MAX_TIMEOUTS)
    with pytest.raises(TransientPollError):
        wait_for_completion(scheduler, JobHandle("9"), sleep=no_sleep)
    assert len(scheduler.polled) == MAX_TIMEOUTS


def test_wait_timeout_counter_resets(scheduler_factory):
    states = (
        [JobState.UNKNOWN, JobState.UNKNOWN, JobState.PENDING]
        + [JobState.UNKNOWN] * (MAX_TIMEOUTS - 1)
        + [JobState.COMPLETED]
    )
    scheduler = scheduler_factory(states=states)
    wait_for_completion(scheduler, JobHandle("9"), sleep=no_sleep)
    assert scheduler.states == []


def test_wait_failed_job(scheduler_factory):
    scheduler = scheduler_factory(states=[JobState.RUNNING, JobState.FAILED])
    with pytest.raises(StageFailure) as exc_info:
        wait_for_completion(scheduler, JobHandle("9"), sleep=no_sleep)
    assert exc_info.value.job_id == "9"


def test_wait_dry_run_handle(scheduler_factory):
    with pytest.raises(ValueError):
        wait_for_completion(scheduler_factory(), DRY_RUN_HANDLE, sleep=no_sleep)


def test_run(make_controller, scheduler_factory):
    scheduler = scheduler_factory(states=[JobState.COMPLETED])
    state = make_controller(scheduler).run()
    assert [s.name for s in scheduler.submitted] == [
        "run_mutect_P1-T1",
        "run_vcf_filter_P1-T1",
        "run_vcf2maf_and_vep_P1-T1",
        "publish_annotation_P1-T1",
        "combine_variant_calls",
        "output_job_metrics_1",
    ]
    metrics = scheduler.stages["output_job_metrics_1"]
    assert [h.job_id for h in metrics.dependencies] == ["1001", "1002", "1003", "1004", "1005"]
    assert not metrics.kill_on_error
    assert metrics.command == (
        f"metrics 1001,1002,1003,1004,1005 > {LOG_DIR}/slurm_job_metrics_1.out"
    )
    assert state.run_index == 1
    assert state.metrics_job == JobHandle("1006")
    assert scheduler.polled == [JobHandle("1006")]
    assert os.path.exists(f"{LOG_DIR}/slurm_job_metrics_1.out")
    assert os.path.exists(f"{LOG_DIR}/run_mutect_pipeline_1.log")
    assert os.path.exists(f"{LOG_DIR}/run_1/run_mutect_P1-T1.sh")
    assert os.path.exists(f"{LOG_DIR}/run_1/output_job_metrics_1.sh")


def test_run_indices_increase(make_controller, scheduler_factory):
    make_controller(scheduler_factory(), no_wait=True).run()
    state = make_controller(scheduler_factory(), no_wait=True).run()
    assert state.run_index == 2
    assert os.path.exists(f"{LOG_DIR}/run_mutect_pipeline_2.log")


def test_run_no_wait(make_controller, scheduler_factory):
    scheduler = scheduler_factory()
    state = make_controller(scheduler, no_wait=True).run()
    assert state.metrics_job == JobHandle("1006")
    assert scheduler.polled == []


def test_run_dependencies(make_controller, scheduler_factory):
    scheduler = scheduler_factory()
    make_controller(scheduler, no_wait=True, dependencies=["77", ""]).run()
    assert [h.job_id for h in scheduler.stages["run_mutect_P1-T1"].dependencies] == ["77"]


def test_run_requested_index(make_controller, scheduler_factory, monkeypatch):
    monkeypatch.setenv("VARCALL_RUN_INDEX", "7")
    state = make_controller(scheduler_factory(), no_wait=True).run()
    assert state.run_index == 7
    state = make_controller(scheduler_factory(), no_wait=True, run_index=9).run()
    assert state.run_index == 9
    with pytest.raises(FilesystemError):
        make_controller(scheduler_factory(), no_wait=True).run()


def test_run_invalid_index_env(make_controller, scheduler_factory, monkeypatch):
    monkeypatch.setenv("VARCALL_RUN_INDEX", "seven")
    with pytest.raises(InvalidConfiguration):
        make_controller(scheduler_factory(), no_wait=True).run()


def test_dry_run(make_controller, scheduler_factory):
    scheduler = scheduler_factory()
    state = make_controller(scheduler, dry_run=True).run()
    assert scheduler.submitted == []
    assert scheduler.polled == []
    assert state.run_index is None
    assert state.metrics_job is None
    assert os.path.exists(f"{LOG_DIR}/run_mutect_pipeline.log")
    assert os.path.exists(f"{LOG_DIR}/dry_run/run_mutect_P1-T1.sh")
    assert not any(name.startswith("slurm_job_metrics") for name in os.listdir(LOG_DIR))


def test_run_nothing_to_do(make_controller, scheduler_factory, touch, work_dir):
    for suffix in ("_MuTect.vcf", "_MuTect_filtered.vcf", "_MuTect_annotated.maf"):
        touch(os.path.join(work_dir, "P1", f"P1-T1{suffix}.md5"))
    scheduler = scheduler_factory()
    state = make_controller(scheduler).run()
    assert [s.name for s in scheduler.submitted] == ["combine_variant_calls"]
    assert state.metrics_job is None
    assert scheduler.polled == []


def test_run_failed(make_controller, scheduler_factory):
    handlers = list(logging.getLogger().handlers)
    scheduler = scheduler_factory(states=[JobState.FAILED])
    with pytest.raises(StageFailure):
        make_controller(scheduler).run()
    assert logging.getLogger().handlers == handlers


def test_run_unknown_cluster(make_controller):
    controller = make_controller(None, cluster="pbs")
    with pytest.raises(InvalidConfiguration):
        controller.run()


def test_run_log_without_logging_setup(make_controller, scheduler_factory):
    root = logging.getLogger()
    level = root.level
    root.setLevel(logging.WARNING)
    try:
        make_controller(scheduler_factory(states=[JobState.COMPLETED])).run()
        assert root.level == logging.WARNING
    finally:
        root.setLevel(level)
    with open(f"{LOG_DIR}/run_mutect_pipeline_1.log") as log_file:
        text = log_file.read()
    assert "Submitting job for run_mutect_P1-T1" in text
    assert "Pipeline terminated successfully." in text
