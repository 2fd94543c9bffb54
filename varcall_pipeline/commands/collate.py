# -*- coding: utf-8 -*-
"""Command template for the cross-sample R collation step"""

import attr

from .common import join_args, required


@attr.s(frozen=True, auto_attribs=True)
class CollateParams:
    script: str = required()
    output_dir: str = required()
    project_name: str = required()


def get_collate_command(params: CollateParams) -> str:
    return join_args(
        "Rscript", params.script, "-d", params.output_dir, "-p", params.project_name
    )
