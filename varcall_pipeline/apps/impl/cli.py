# -*- coding: utf-8 -*-
"""Command line handling shared by the pipeline apps"""

import argparse

from ... import __version__
from ...base import PipelineError
from ...controller import RunController
from .logging import LVL_ERROR, LVL_IMPORTANT, LVL_SUCCESS, log, setup_logging


def build_parser(description: str) -> argparse.ArgumentParser:
    """Return parser with the arguments common to all pipelines"""
    parser = argparse.ArgumentParser(description=description)

    parser.add_argument("--version", action="version", version="%%(prog)s %s" % __version__)
    parser.add_argument("--verbose", action="store_true", default=False, help="Enable verbose mode")

    group = parser.add_argument_group("Configuration", "Input configuration and output location")
    group.add_argument(
        "-t", "--tool", required=True, help="Path to tool configuration YAML (tool_config.yaml)"
    )
    group.add_argument(
        "-d", "--data", required=True, help="Path to sample configuration YAML (data_config.yaml)"
    )
    group.add_argument("-o", "--out_dir", required=True, help="Path to output directory")

    group = parser.add_argument_group("Cluster", "Job submission and scheduling")
    group.add_argument(
        "-c", "--cluster", default="slurm", help="Scheduler to submit to, default: %(default)s"
    )
    group.add_argument(
        "-p", "--partition", default=None, help="Default partition for all submitted jobs"
    )
    group.add_argument(
        "--remove",
        action="store_true",
        default=False,
        help="Remove temporary and intermediate files once the final outputs exist",
    )
    group.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=False,
        help="Write job scripts but do not submit them",
    )
    group.add_argument(
        "--no-wait",
        dest="no_wait",
        action="store_true",
        default=False,
        help="Do not wait for the submitted jobs to finish",
    )
    group.add_argument(
        "--dependency",
        dest="dependencies",
        metavar="JOBID",
        action="append",
        default=[],
        help="Job ID all submitted stages depend on; may be given multiple times",
    )
    group.add_argument(
        "--run-index",
        dest="run_index",
        type=int,
        default=None,
        help="Use this run index instead of the next free one",
    )
    return parser


def run_pipeline(args, pipeline_cls, **pipeline_kwargs) -> int:
    """Run ``pipeline_cls`` for the parsed ``args``, return exit code"""
    setup_logging(args.verbose)
    log("{name} pipeline", {"name": pipeline_cls.name}, level=LVL_IMPORTANT)
    controller = RunController(
        pipeline_cls,
        tool_config_path=args.tool,
        data_config_path=args.data,
        out_dir=args.out_dir,
        cluster=args.cluster,
        partition=args.partition,
        remove=args.remove,
        dry_run=args.dry_run,
        no_wait=args.no_wait,
        dependencies=args.dependencies,
        run_index=args.run_index,
        pipeline_kwargs=pipeline_kwargs,
    )
    try:
        state = controller.run()
    except PipelineError as e:
        log("{msg}", {"msg": e}, level=LVL_ERROR)
        return 1
    log(
        "{submitted} stage(s) submitted, {skipped} skipped",
        {"submitted": len(state.submitted), "skipped": len(state.skipped)},
        level=LVL_SUCCESS,
    )
    return 0
