# -*- coding: utf-8 -*-
"""Shared helpers for the command templates

All functions in the ``commands`` package are pure: they only interpolate paths and flags into
command text and never touch the file system.
"""

import shlex
import typing

import attr


def _check_required(instance, attribute, value):
    """attrs validator rejecting ``None`` and empty strings"""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(
            f"{type(instance).__name__}: missing required parameter {attribute.name!r}"
        )


def required(**kwargs):
    """Declare a parameter that must be given and non-empty"""
    return attr.ib(validator=_check_required, **kwargs)


def optional(**kwargs):
    """Declare a parameter that may be left out"""
    return attr.ib(default=None, **kwargs)


def join_args(*parts: typing.Optional[str]) -> str:
    """Join non-empty command fragments with a single space"""
    return " ".join(part for part in parts if part)


def md5_command(path: str) -> str:
    """Write checksum sentinel for ``path`` next to it"""
    return f"md5sum {path} > {path}.md5"


def with_sentinel(command: str, *outputs: str) -> str:
    """Append checksum lines for ``outputs``; the last line written marks completion"""
    return "\n\n".join([command] + [md5_command(output) for output in outputs])


@attr.s(frozen=True, auto_attribs=True)
class VcfFilterParams:
    """Remove records flagged ``REJECT`` with vcftools"""

    input: str = required()
    output: str = required()
    tmp_dir: str = required()


def get_vcf_filter_command(params: VcfFilterParams) -> str:
    return join_args(
        "vcftools",
        "--vcf",
        params.input,
        "--remove-filtered REJECT",
        "--stdout --recode",
        "--temp",
        params.tmp_dir,
        ">",
        params.output,
    )


@attr.s(frozen=True, auto_attribs=True)
class PublishParams:
    """Second half of a two-phase stage: move tentative outputs into place

    ``required_outputs`` are tested for being non-empty before anything is moved, so an empty
    result fails the stage instead of being published.  ``moves`` maps tentative paths to final
    paths, ``compress`` lists VCFs to bgzip and index after moving.  ``checksums`` are written
    last and in order, so the final entry is the stage's sentinel.
    """

    required_outputs: tuple[str, ...] = attr.ib(converter=tuple)
    checksums: tuple[str, ...] = attr.ib(converter=tuple)
    moves: tuple[tuple[str, str], ...] = attr.ib(converter=tuple, factory=tuple)
    compress: tuple[str, ...] = attr.ib(converter=tuple, factory=tuple)

    @required_outputs.validator
    def _check_outputs(self, attribute, value):
        if not value:
            raise ValueError("PublishParams: at least one required output must be given")

    @checksums.validator
    def _check_checksums(self, attribute, value):
        if not value:
            raise ValueError("PublishParams: no checksum, the stage would have no sentinel")


def get_publish_command(params: PublishParams) -> str:
    lines = [f"test -s {path}" for path in params.required_outputs]
    for src, dest in params.moves:
        lines.append(f"mv {src} {dest}")
    for path in params.compress:
        lines.append(f"bgzip -f {path}")
        lines.append(f"tabix -f -p vcf {path}.gz")
    for path in params.checksums:
        lines.append(md5_command(path))
    return "\n".join(lines)


@attr.s(frozen=True, auto_attribs=True)
class CleanupParams:
    """Remove temporary/intermediate files once all final outputs carry their sentinel"""

    paths: tuple[str, ...] = attr.ib(converter=tuple)
    final_sentinels: tuple[str, ...] = attr.ib(converter=tuple, factory=tuple)


def get_cleanup_command(params: CleanupParams) -> str:
    removals = [f"rm -rf {shlex.quote(path)}" for path in params.paths]
    if not params.final_sentinels:
        return "\n".join(removals)
    test = " ] && [ -s ".join(params.final_sentinels)
    return "\n".join(
        [f"if [ -s {test} ]; then"]
        + [f"  {line}" for line in removals]
        + [
            "else",
            '  echo "One or more FINAL OUTPUT FILES is missing; not removing intermediates"',
            "fi",
        ]
    )
