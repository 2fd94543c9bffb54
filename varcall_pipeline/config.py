# -*- coding: utf-8 -*-
"""Tool configuration and sample manifest models

Both documents are YAML files.  The tool configuration carries the reference, tool versions and
per-stage resource blocks, e.g.::

    project_name: PROJ-001
    reference: /data/genomes/hg38/hg38.fa
    ref_type: hg38
    mutect_version: 1.1.5
    vcftools_version: 0.1.15
    samtools_version: 1.9
    r_version: 3.6.1
    mutect:
      parameters:
        mutect: {time: "24:00:00", mem: 4G, java_mem: 3g}
        filter: {time: "04:00:00", mem: 1G}
    annotate:
      vcf2maf_path: /opt/vcf2maf/vcf2maf.pl
      vep_path: /opt/vep
      vep_data: /data/vep
      time: "12:00:00"
      mem: 16G

The sample manifest maps patients to their normal and tumour BAMs::

    PATIENT-1:
      normal:
        PATIENT-1-N: /path/to/normal.bam
      tumour:
        PATIENT-1-T1: /path/to/tumour1.bam
"""

import enum
import os
import re
import typing

from pydantic import ConfigDict, PrivateAttr, ValidationError, field_validator, model_validator
import ruamel.yaml as ruamel_yaml
from ruamel.yaml.error import YAMLError

from .base import InvalidConfiguration, MissingConfiguration, UnsupportedReferenceBuild
from .models import (
    EnumField,
    JavaStageParameters,
    ReferenceBuild,
    SizeString,
    StageParameters,
    ToolGeneration,
    VarcallModel,
    WallTime,
)

#: Fallback dbSNP resources for the cluster, by reference build family
DEFAULT_DBSNP = {
    "hg38": "/cluster/tools/data/genomes/human/hg38/hg38bundle/dbsnp_144.hg38.vcf.gz",
    "hg19": "/cluster/tools/data/genomes/human/hg19/variantcallingdata/dbsnp_138.hg19.vcf",
}

#: Allowed characters in patient and sample IDs, which end up in job and file names
ID_RE = re.compile(r"^[A-Za-z0-9_.+-]+$")


def _check_ids(ids: typing.Iterable[str], what: str):
    if invalid := [i for i in ids if not ID_RE.match(i)]:
        raise ValueError(f"invalid {what} ID(s) {invalid}, use only letters, digits and _.+-")


class SampleKind(enum.StrEnum):
    """Role of a sample within a patient"""

    NORMAL = "normal"
    TUMOUR = "tumour"


class MutectParameters(VarcallModel):
    mutect: JavaStageParameters
    """MuTect calling (also artifact detection mode when building a panel of normals)"""

    filter: StageParameters
    """vcftools REJECT filter"""

    combine: JavaStageParameters | None = None
    """CombineVariants, required when creating a panel of normals"""


class Mutect(VarcallModel):
    pon: str | None = None
    """Panel of normals VCF; enables tumour-only calling"""

    parameters: MutectParameters


class SomaticSniperParameters(VarcallModel):
    somaticsniper: StageParameters
    pileup: StageParameters
    readcount: StageParameters
    filter: StageParameters


class SomaticSniper(VarcallModel):
    pon: str | None = None
    """Positions to exclude (panel of normals) in the final filter"""

    parameters: SomaticSniperParameters


class Bqsr(VarcallModel):
    known_sites: list[str] = []
    """Known variant sites; dbSNP is always used"""

    parameters: JavaStageParameters


class Annotate(VarcallModel):
    vcf2maf_path: str
    vep_path: str
    vep_data: str
    filter_vcf: str | None = None
    """ExAC/gnomAD VCF used by vcf2maf to flag common variants"""

    time: WallTime
    mem: SizeString
    cpus: int = 4


class ToolConfig(VarcallModel):
    """The tool configuration document, shared among all pipelines of a project"""

    model_config = ConfigDict(
        extra="allow",
        use_attribute_docstrings=True,
        use_enum_values=True,
        validate_default=True,
        coerce_numbers_to_str=True,
    )

    project_name: str
    reference: str
    ref_type: typing.Annotated[ReferenceBuild, EnumField(ReferenceBuild)]

    dbsnp: str | None = None
    cosmic: str | None = None
    intervals_bed: str | None = None

    mutect_version: str | None = None
    gatk_version: str | None = None
    vcftools_version: str | None = None
    samtools_version: str | None = None
    somaticsniper_version: str | None = None
    r_version: str | None = None

    collate_script: str = "collect_snv_output.R"
    """R script collating the per-sample outputs of the whole cohort"""

    mutect: Mutect | None = None
    somaticsniper: SomaticSniper | None = None
    bqsr: Bqsr | None = None
    annotate: Annotate | None = None

    _tool_generation: ToolGeneration | None = PrivateAttr(default=None)

    @field_validator("ref_type", mode="before")
    @classmethod
    def ensure_known_build(cls, value):
        if value not in [b.value for b in ReferenceBuild]:
            raise ValueError(f"unrecognized reference build {value!r}")
        return value

    @model_validator(mode="after")
    def resolve_defaults(self):
        if not self.dbsnp:
            if self.ref_type in (ReferenceBuild.HG38, ReferenceBuild.GRCH38):
                self.dbsnp = DEFAULT_DBSNP["hg38"]
            else:
                self.dbsnp = DEFAULT_DBSNP["hg19"]
        if self.gatk_version:
            self._tool_generation = ToolGeneration.from_version(self.gatk_version)
        return self

    @property
    def reference_build(self) -> ReferenceBuild:
        return ReferenceBuild(self.ref_type)

    @property
    def tool_generation(self) -> ToolGeneration:
        if self._tool_generation is None:
            raise MissingConfiguration("gatk_version is required to select the GATK syntax")
        return self._tool_generation

    def module(self, name: str, version_key: str | None = None) -> str:
        """Return environment module string ``<name>/<version>`` for the tool"""
        key = version_key or f"{name.lower()}_version"
        version = getattr(self, key, None)
        if not version:
            raise MissingConfiguration(f"missing required configuration key {key!r}")
        return f"{name}/{version}"

    def require(self, *keys: str):
        """Raise ``MissingConfiguration`` if one of the top-level ``keys`` is unset"""
        for key in keys:
            if getattr(self, key, None) is None:
                raise MissingConfiguration(f"missing required configuration key {key!r}")


class PatientSamples(VarcallModel):
    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    normal: dict[str, str] = {}
    tumour: dict[str, str] = {}

    @field_validator("normal", "tumour", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return {} if value is None else value

    @model_validator(mode="after")
    def ensure_valid_samples(self):
        if not self.normal and not self.tumour:
            raise ValueError("patient has neither normal nor tumour samples")
        if duplicated := sorted(set(self.normal) & set(self.tumour)):
            raise ValueError(f"sample IDs used for both normal and tumour: {duplicated}")
        _check_ids([*self.normal, *self.tumour], "sample")
        return self

    @property
    def normal_ids(self) -> list[str]:
        return list(self.normal)

    @property
    def tumour_ids(self) -> list[str]:
        return list(self.tumour)

    def bam(self, sample_id: str) -> str:
        if sample_id in self.normal:
            return self.normal[sample_id]
        return self.tumour[sample_id]


class SampleManifest(VarcallModel):
    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    patients: dict[str, PatientSamples]

    @field_validator("patients")
    @classmethod
    def ensure_valid_patient_ids(cls, value):
        _check_ids(value, "patient")
        return value

    def sorted_patients(self) -> list[tuple[str, PatientSamples]]:
        """Patients in lexicographic order of their IDs"""
        return sorted(self.patients.items())


def load_yaml(path: str) -> typing.Any:
    """Load YAML document at ``path``, raising ``InvalidConfiguration`` on problems"""
    if not os.path.exists(path):
        raise InvalidConfiguration(f"configuration file {path} does not exist")
    yaml = ruamel_yaml.YAML(typ="safe")
    try:
        with open(path, "rt") as inputf:
            return yaml.load(inputf)
    except YAMLError as e:
        raise InvalidConfiguration(f"could not parse {path}: {e}") from e


def _describe_errors(e: ValidationError) -> str:
    return "; ".join(
        "{}: {}".format(".".join(map(str, err["loc"])) or "<root>", err["msg"])
        for err in e.errors()
    )


def parse_tool_config(data: typing.Any, path: str = "<tool config>") -> ToolConfig:
    """Validate already loaded tool configuration ``data``"""
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"tool configuration {path} must be a mapping")
    try:
        return ToolConfig(**data)
    except ValidationError as e:
        if any(err["loc"][:1] == ("ref_type",) and err["type"] != "missing" for err in e.errors()):
            raise UnsupportedReferenceBuild(
                f"unsupported reference build {data.get('ref_type')!r} in {path}; "
                f"expected one of {[b.value for b in ReferenceBuild]}"
            ) from e
        if any(err["type"] == "missing" for err in e.errors()):
            raise MissingConfiguration(f"invalid tool configuration {path}: {_describe_errors(e)}")
        raise InvalidConfiguration(f"invalid tool configuration {path}: {_describe_errors(e)}")


def parse_sample_manifest(data: typing.Any, path: str = "<sample manifest>") -> SampleManifest:
    """Validate already loaded sample manifest ``data``"""
    if not isinstance(data, dict) or not data:
        raise InvalidConfiguration(f"sample manifest {path} must be a non-empty mapping")
    try:
        return SampleManifest(patients=data)
    except ValidationError as e:
        raise InvalidConfiguration(f"invalid sample manifest {path}: {_describe_errors(e)}")


def load_tool_config(path: str) -> ToolConfig:
    return parse_tool_config(load_yaml(path), path)


def load_sample_manifest(path: str) -> SampleManifest:
    return parse_sample_manifest(load_yaml(path), path)
