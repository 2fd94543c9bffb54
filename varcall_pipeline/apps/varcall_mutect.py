# -*- coding: utf-8 -*-
"""Submit MuTect somatic SNV calling, or the creation of a MuTect panel of normals"""

import sys

from ..pipelines import MutectPipeline, MutectPonPipeline
from .impl.cli import build_parser, run_pipeline


def main(argv=None):
    """Main program entry point, starts parsing command line arguments"""
    parser = build_parser(__doc__)
    group = parser.add_argument_group("MuTect", "MuTect specific arguments")
    group.add_argument(
        "--pon", default=None, help="Panel of normals VCF, overrides the tool configuration"
    )
    group.add_argument(
        "--create-panel-of-normals",
        dest="create_pon",
        action="store_true",
        default=False,
        help="Create a panel of normals from the normal samples instead of calling tumours",
    )
    args = parser.parse_args(argv)
    if args.create_pon:
        return run_pipeline(args, MutectPonPipeline)
    return run_pipeline(args, MutectPipeline, pon=args.pon)


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
