# -*- coding: utf-8 -*-
"""Tests for the MuTect command templates"""

import pytest

from varcall_pipeline.commands import CommandKind, build_command
from varcall_pipeline.commands.mutect import (
    CombinePonParams,
    MutectMode,
    MutectParams,
    MutectReference,
    PonOutput,
    get_pon_header_fix_command,
)


@pytest.fixture
def mutect_reference():
    return MutectReference(reference="/ref/hg38.fa", dbsnp="/ref/dbsnp.vcf")


def test_paired(mutect_reference):
    params = MutectParams(
        mode=MutectMode.PAIRED,
        resources=mutect_reference,
        tumour="/bam/T.bam",
        tumour_id="T",
        normal="/bam/N.bam",
        normal_id="N",
        output_stem="/out/T_MuTect",
        java_mem="3g",
        tmp_dir="/out/TEMP",
    )
    assert build_command(CommandKind.MUTECT, params) == (
        "java -Xmx3g -Djava.io.tmpdir=/out/TEMP -jar $mutect_dir/muTect.jar -T MuTect "
        "-R /ref/hg38.fa --input_file:tumor /bam/T.bam --input_file:normal /bam/N.bam "
        "--tumor_sample_name T --normal_sample_name N "
        "--vcf /out/T_MuTect.vcf --out /out/T_MuTect.stats --dbsnp /ref/dbsnp.vcf"
    )


def test_tumour_only_with_resources():
    resources = MutectReference(
        reference="/ref/hg38.fa",
        dbsnp="/ref/dbsnp.vcf",
        cosmic="/ref/cosmic.vcf",
        intervals="/ref/targets.bed",
    )
    params = MutectParams(
        mode="tumour_only",
        resources=resources,
        tumour="/bam/T.bam",
        tumour_id="T",
        pon="/pon/panel_of_normals.vcf",
        output_stem="/out/T_MuTect",
        java_mem="3g",
        tmp_dir="/out/TEMP",
    )
    command = build_command(CommandKind.MUTECT, params)
    assert "--input_file:normal" not in command
    assert "--normal_sample_name" not in command
    assert command.endswith(
        "--dbsnp /ref/dbsnp.vcf --cosmic /ref/cosmic.vcf "
        "--normal_panel /pon/panel_of_normals.vcf "
        "--intervals /ref/targets.bed --interval_padding 100"
    )


def test_artifact_detection(mutect_reference):
    params = MutectParams(
        mode=MutectMode.ARTIFACT_DETECTION,
        resources=mutect_reference,
        tumour="/bam/N.bam",
        tumour_id="N",
        output_stem="/out/N_MuTect",
        java_mem="3g",
        tmp_dir="/out/TEMP",
        pon="/pon/ignored.vcf",
    )
    command = build_command(CommandKind.MUTECT, params)
    assert "--input_file:tumor /bam/N.bam --vcf /out/N_MuTect.vcf --artifact_detection_mode" in (
        command
    )
    assert "--out" not in command
    assert "--normal_panel" not in command


def test_paired_requires_normal(mutect_reference):
    with pytest.raises(ValueError):
        MutectParams(
            mode=MutectMode.PAIRED,
            resources=mutect_reference,
            tumour="/bam/T.bam",
            tumour_id="T",
            output_stem="/out/T_MuTect",
            java_mem="3g",
            tmp_dir="/out/TEMP",
        )


def test_tumour_only_requires_pon(mutect_reference):
    with pytest.raises(ValueError):
        MutectParams(
            mode=MutectMode.TUMOUR_ONLY,
            resources=mutect_reference,
            tumour="/bam/T.bam",
            tumour_id="T",
            output_stem="/out/T_MuTect",
            java_mem="3g",
            tmp_dir="/out/TEMP",
        )


def test_unknown_mode(mutect_reference):
    with pytest.raises(ValueError):
        MutectParams(
            mode="joint",
            resources=mutect_reference,
            tumour="/bam/T.bam",
            tumour_id="T",
            output_stem="/out/T_MuTect",
            java_mem="3g",
            tmp_dir="/out/TEMP",
        )


def test_combine_pon_full():
    params = CombinePonParams(
        reference="/ref/hg38.fa",
        inputs=[("N1", "/out/N1.vcf"), ("N2", "/out/N2.vcf")],
        output="/out/merged_panel_of_normals.vcf",
        java_mem="6g",
        tmp_dir="/out/TEMP",
    )
    assert build_command(CommandKind.COMBINE_PON, params) == (
        "java -Xmx6g -Djava.io.tmpdir=/out/TEMP -jar $gatk_dir/GenomeAnalysisTK.jar "
        "-T CombineVariants -R /ref/hg38.fa -V:N1 /out/N1.vcf -V:N2 /out/N2.vcf "
        "-o /out/merged_panel_of_normals.vcf "
        "--filteredrecordsmergetype KEEP_IF_ANY_UNFILTERED "
        "--genotypemergeoption UNSORTED --filteredAreUncalled"
    )


def test_combine_pon_trimmed():
    params = CombinePonParams(
        reference="/ref/hg38.fa",
        inputs=[("N1", "/out/N1.vcf")],
        output="/out/merged_panel_of_normals_trimmed.vcf",
        java_mem="6g",
        tmp_dir="/out/TEMP",
        out_type=PonOutput.TRIMMED,
    )
    assert build_command(CommandKind.COMBINE_PON, params).endswith(
        "-minN 2 -minimalVCF -suppressCommandLineHeader --excludeNonVariants --sites_only"
    )


def test_combine_pon_requires_inputs():
    with pytest.raises(ValueError):
        CombinePonParams(
            reference="/ref/hg38.fa",
            inputs=[],
            output="/out/pon.vcf",
            java_mem="6g",
            tmp_dir="/out/TEMP",
        )


def test_pon_header_fix():
    assert get_pon_header_fix_command("/out/pon.vcf").splitlines() == [
        "sed -i 's/VCFv4.2/VCFv4.1/g' /out/pon.vcf",
        "sed -i 's/AD,Number=R/AD,Number=./g' /out/pon.vcf",
    ]
