import enum
from enum import Enum
import re
import typing
from typing import Annotated

from annotated_types import Predicate
from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import PydanticUndefined


def enum_options(enum: Enum) -> list[tuple[str, typing.Any]]:
    """Returns a list of tuples containing the name and value of each enum member."""
    return [(e.name, e.value) for e in enum]


def EnumField(enum: type[Enum], default: typing.Any = PydanticUndefined, *args, **kwargs):
    """
    An extension of pydantic's `Field` that adds 'options' to the json_schema_extra field,
    containing the available options of the specified enum.
    """
    extra = kwargs.get("json_schema_extra", {})
    extra.update(dict(options=enum_options(enum)))
    kwargs["json_schema_extra"] = extra
    return Field(default, *args, **kwargs)


size_string_regexp = re.compile(r"[. 0-9]+([KMGTP])", re.IGNORECASE)
SizeString = Annotated[str, Predicate(lambda s: size_string_regexp.match(s) is not None)]
"""A string representing a size, e.g. '1G' for 1 gigabyte."""

wall_time_regexp = re.compile(r"^(\d+-)?\d{1,3}:\d{2}:\d{2}$")
WallTime = Annotated[str, Predicate(lambda s: wall_time_regexp.match(s) is not None)]
"""A wall-time ceiling, e.g. '24:00:00' or '2-00:00:00'."""


class VarcallModel(BaseModel):
    """
    Base class for all configuration models.
    By default, extra fields are forbidden, attribute docstrings are used for field descriptions,
    enum member values instead of names are used, and default values are validated (because
    validation can potentially modify the values of fields with default values)
    """

    model_config = ConfigDict(
        extra="forbid",
        use_attribute_docstrings=True,
        use_enum_values=True,
        validate_default=True,
    )


class ReferenceBuild(enum.StrEnum):
    """Reference genome build tag"""

    GRCH37 = "GRCh37"
    HG19 = "hg19"
    HG38 = "hg38"
    GRCH38 = "GRCh38"

    @property
    def ncbi_build(self) -> str:
        """NCBI assembly name as expected by vcf2maf/VEP"""
        if self in (ReferenceBuild.GRCH37, ReferenceBuild.HG19):
            return "GRCh37"
        return "GRCh38"


class ToolGeneration(enum.StrEnum):
    """GATK command-line generation, selects between the ``-T Tool`` and ``Tool`` syntax"""

    GATK3 = "gatk3"
    GATK4 = "gatk4"

    @classmethod
    def from_version(cls, version: str) -> "ToolGeneration":
        """Resolve generation from a version string such as ``3.8`` or ``4.1.8.1``"""
        match = re.match(r"^\s*(\d+)", str(version))
        if not match:
            raise ValueError(f"cannot parse GATK version {version!r}")
        return cls.GATK3 if int(match.group(1)) < 4 else cls.GATK4


class StageParameters(VarcallModel):
    """Resource block of a single stage"""

    time: WallTime
    """Wall-time ceiling handed to the scheduler"""

    mem: SizeString
    """Memory request, e.g. ``4G``"""

    cpus: int = 1
    """Number of CPUs per task"""


class JavaStageParameters(StageParameters):
    """Resource block of a stage running a Java tool"""

    java_mem: SizeString
    """Maximal Java heap, passed as ``-Xmx``"""
