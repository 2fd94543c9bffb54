# -*- coding: utf-8 -*-
"""Submit SomaticSniper somatic SNV calling"""

import sys

from ..pipelines import SomaticSniperPipeline
from .impl.cli import build_parser, run_pipeline


def main(argv=None):
    """Main program entry point, starts parsing command line arguments"""
    args = build_parser(__doc__).parse_args(argv)
    return run_pipeline(args, SomaticSniperPipeline)


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
