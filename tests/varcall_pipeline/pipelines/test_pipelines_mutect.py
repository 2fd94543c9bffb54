# -*- coding: utf-8 -*-
"""Tests for the MuTect pipeline"""

import pytest

from varcall_pipeline.base import MissingConfiguration
from varcall_pipeline.config import parse_tool_config
from varcall_pipeline.pipelines import MutectPipeline


def ids(handles):
    return [handle.job_id for handle in handles]


@pytest.fixture
def bqsr_config_dict(tool_config_dict):
    tool_config_dict["bqsr"] = {
        "known_sites": ["/ref/mills.vcf"],
        "parameters": {"time": "12:00:00", "mem": "8G", "java_mem": "6g"},
    }
    return tool_config_dict


def test_paired_stages(tool_config, work_dir, sample_manifest_dict, run_builder, fake_scheduler):
    state = run_builder(MutectPipeline(tool_config, work_dir), sample_manifest_dict)
    assert [s.name for s in fake_scheduler.submitted] == [
        "run_mutect_P1-T1",
        "run_vcf_filter_P1-T1",
        "run_vcf2maf_and_vep_P1-T1",
        "publish_annotation_P1-T1",
        "run_mutect_P1-T2",
        "run_vcf_filter_P1-T2",
        "run_vcf2maf_and_vep_P1-T2",
        "publish_annotation_P1-T2",
        "combine_variant_calls",
    ]
    stages = fake_scheduler.stages
    assert ids(stages["run_mutect_P1-T2"].dependencies) == []
    assert ids(stages["run_vcf_filter_P1-T2"].dependencies) == ["1005"]
    assert ids(stages["publish_annotation_P1-T2"].dependencies) == ["1007"]
    assert state.final_outputs["P1"] == [
        "/work/out/P1/P1-T1_MuTect_annotated.maf",
        "/work/out/P1/P1-T2_MuTect_annotated.maf",
    ]


def test_paired_mutect_stage(
    tool_config, work_dir, sample_manifest_dict, run_builder, fake_scheduler
):
    run_builder(MutectPipeline(tool_config, work_dir), sample_manifest_dict)
    stage = fake_scheduler.stages["run_mutect_P1-T1"]
    assert "--input_file:tumor /work/out/P1/bam_links/P1-T1.bam" in stage.command
    assert "--input_file:normal /work/out/P1/bam_links/P1-N.bam" in stage.command
    assert "--normal_sample_name P1-N" in stage.command
    assert "--normal_panel" not in stage.command
    assert stage.command.splitlines()[-1] == (
        "md5sum /work/out/P1/P1-T1_MuTect.vcf > /work/out/P1/P1-T1_MuTect.vcf.md5"
    )
    assert stage.sentinel == "/work/out/P1/P1-T1_MuTect.vcf.md5"
    assert stage.modules == ("mutect/1.1.5",)
    assert stage.resources.time == "24:00:00"
    assert stage.resources.memory == "4G"


def test_filter_stage(tool_config, work_dir, sample_manifest_dict, run_builder, fake_scheduler):
    run_builder(MutectPipeline(tool_config, work_dir), sample_manifest_dict)
    stage = fake_scheduler.stages["run_vcf_filter_P1-T1"]
    assert stage.command.startswith(
        "vcftools --vcf /work/out/P1/P1-T1_MuTect.vcf --remove-filtered REJECT"
    )
    assert stage.sentinel == "/work/out/P1/P1-T1_MuTect_filtered.vcf.md5"
    assert stage.modules == ("vcftools/0.1.15",)


def test_annotation_stages(
    tool_config, work_dir, sample_manifest_dict, run_builder, fake_scheduler
):
    run_builder(MutectPipeline(tool_config, work_dir), sample_manifest_dict)
    annotate = fake_scheduler.stages["run_vcf2maf_and_vep_P1-T1"]
    assert "--input-vcf /work/out/P1/P1-T1_MuTect_filtered.vcf" in annotate.command
    assert "--output-maf /work/out/P1/TEMP/P1-T1_MuTect_annotated.maf" in annotate.command
    assert "--normal-id P1-N" in annotate.command
    assert "--ncbi-build GRCh38" in annotate.command
    assert annotate.modules == ("perl", "samtools/1.9", "tabix")
    assert annotate.resources.threads == 4
    assert annotate.sentinel == "/work/out/P1/P1-T1_MuTect_annotated.maf.md5"

    publish = fake_scheduler.stages["publish_annotation_P1-T1"]
    lines = publish.command.splitlines()
    assert lines[0] == "test -s /work/out/P1/TEMP/P1-T1_MuTect_annotated.maf"
    assert (
        "mv /work/out/P1/TEMP/P1-T1_MuTect_filtered.vep.vcf /work/out/P1/P1-T1_MuTect_annotated.vcf"
        in lines
    )
    assert lines[-1] == (
        "md5sum /work/out/P1/P1-T1_MuTect_annotated.maf "
        "> /work/out/P1/P1-T1_MuTect_annotated.maf.md5"
    )
    assert publish.sentinel == annotate.sentinel


def test_tumour_only(tool_config_dict, work_dir, run_builder, fake_scheduler):
    tool_config_dict["mutect"]["pon"] = "/pon/panel_of_normals.vcf"
    pipeline = MutectPipeline(parse_tool_config(tool_config_dict), work_dir)
    run_builder(pipeline, {"P2": {"tumour": {"P2-T": "/data/P2-T.bam"}}})
    mutect = fake_scheduler.stages["run_mutect_P2-T"]
    assert "--input_file:normal" not in mutect.command
    assert "--normal_panel /pon/panel_of_normals.vcf" in mutect.command
    assert "--normal-id" not in fake_scheduler.stages["run_vcf2maf_and_vep_P2-T"].command


def test_pon_argument_overrides_config(tool_config_dict, work_dir):
    tool_config_dict["mutect"]["pon"] = "/pon/panel_of_normals.vcf"
    config = parse_tool_config(tool_config_dict)
    assert MutectPipeline(config, work_dir).pon == "/pon/panel_of_normals.vcf"
    assert MutectPipeline(config, work_dir, pon="/other/pon.vcf").pon == "/other/pon.vcf"


def test_patients_skipped(tool_config, work_dir, run_builder, fake_scheduler):
    manifest = {
        "P1": {"tumour": {"P1-T": "/data/P1-T.bam"}},
        "P2": {"normal": {"P2-N": "/data/P2-N.bam"}},
    }
    state = run_builder(MutectPipeline(tool_config, work_dir), manifest)
    assert [s.name for s in fake_scheduler.submitted] == ["combine_variant_calls"]
    assert state.contexts == []
    assert state.final_outputs == {}


def test_bqsr(bqsr_config_dict, work_dir, sample_manifest_dict, run_builder, fake_scheduler):
    pipeline = MutectPipeline(parse_tool_config(bqsr_config_dict), work_dir)
    run_builder(pipeline, sample_manifest_dict)
    stages = fake_scheduler.stages
    assert [s.name for s in fake_scheduler.submitted][:3] == [
        "run_bqsr_P1-N",
        "run_bqsr_P1-T1",
        "run_mutect_P1-T1",
    ]
    bqsr = stages["run_bqsr_P1-N"]
    assert "-T BaseRecalibrator" in bqsr.command
    assert "-I /work/out/P1/bam_links/P1-N.bam" in bqsr.command
    assert "--knownSites /ref/mills.vcf" in bqsr.command
    assert "-o /work/out/P1/P1-N_recalibrated.bam" in bqsr.command
    assert bqsr.sentinel == "/work/out/P1/P1-N_recalibrated.bam.md5"
    assert bqsr.modules == ("gatk/3.8",)
    assert ids(stages["run_bqsr_P1-T1"].dependencies) == ["1001"]
    mutect = stages["run_mutect_P1-T1"]
    assert ids(mutect.dependencies) == ["1002", "1001"]
    assert "--input_file:tumor /work/out/P1/P1-T1_recalibrated.bam" in mutect.command
    assert "--input_file:normal /work/out/P1/P1-N_recalibrated.bam" in mutect.command


def test_bqsr_requires_gatk_version(bqsr_config_dict, work_dir):
    del bqsr_config_dict["gatk_version"]
    with pytest.raises(MissingConfiguration):
        MutectPipeline(parse_tool_config(bqsr_config_dict), work_dir)


@pytest.mark.parametrize("section", ["mutect", "annotate", "mutect_version"])
def test_missing_configuration(tool_config_dict, work_dir, section):
    del tool_config_dict[section]
    with pytest.raises(MissingConfiguration):
        MutectPipeline(parse_tool_config(tool_config_dict), work_dir)
