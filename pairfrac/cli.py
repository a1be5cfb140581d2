"""
cli.py
======
Command-line entry point: tree + sample table in, distance matrix out.

    pairfrac -t tree.nwk -i table.tsv -o distances.tsv

The log level is read from the PAIRFRAC_LOG_LEVEL environment variable
(default WARNING).  On any error a message naming the failing input or
sample pair is printed to stderr, no output file is written, and the exit
status is 1.
"""

import argparse
import logging
import os
import sys

from pairfrac import __version__
from pairfrac._errors import UniFracError
from pairfrac._table import write_distance_matrix
from pairfrac._unifrac import UniFrac

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "WARNING") -> None:
    """Send log records to stderr at *log_level*."""
    numeric_level = getattr(logging, log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_parser():
    parser = argparse.ArgumentParser(
        prog="pairfrac",
        description="pairwise unweighted UniFrac distance matrix",
    )
    parser.add_argument(
        "-t",
        "--tree",
        required=True,
        metavar="TREE_FILE",
        help="input NEWICK tree file",
    )
    parser.add_argument(
        "-i",
        "--input",
        required=True,
        metavar="TABLE_FILE",
        help="input tab-delimited sample x taxon table",
    )
    parser.add_argument(
        "-o",
        "--output",
        required=True,
        metavar="OUTPUT_FILE",
        help="output file for the distance matrix",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def format_error_chain(err: BaseException) -> str:
    """One line per exception, outermost first, following ``__cause__``."""
    lines = []
    while err is not None:
        lines.append(f"{type(err).__name__}: {err}")
        err = err.__cause__
    return "\n  caused by ".join(lines)


def run(args) -> None:
    uf = UniFrac.from_files(args.tree, args.input)
    dist_matrix = uf.distance_matrix()
    write_distance_matrix(args.output, uf.sample_names, dist_matrix)


def main(arg_list=None) -> int:
    args = get_parser().parse_args(arg_list)
    setup_logging(os.environ.get("PAIRFRAC_LOG_LEVEL", "WARNING"))

    try:
        run(args)
    except (OSError, UniFracError) as err:
        logger.debug("Run failed", exc_info=True)
        print(f"pairfrac: error: {format_error_chain(err)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
