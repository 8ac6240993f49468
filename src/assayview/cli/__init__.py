"""
assayview CLI - inspect, export, convert and compare assay views.

Commands:
    assayview inspect   - Load a configured backend and summarize it
    assayview export    - Subset a backend and write the slice to CSV
    assayview save      - Convert a CSV matrix to the local HDF5 directory format
    assayview compare   - Check two backends agree on a slice
"""

import argparse
import logging
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for assayview."""
    parser = argparse.ArgumentParser(
        prog="assayview",
        description="Backend-agnostic views over genomic assay matrices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  inspect   Load a configured backend and summarize it (no payload read)
  export    Subset a backend and write the slice to CSV
  save      Convert a CSV matrix to the local HDF5 directory format
  compare   Check two backends agree on a slice

Examples:
  assayview save --input methylation.csv --col-annotation clinical.csv --output brca_h5
  assayview inspect --backend remote.yaml
  assayview export --backend remote.yaml --rows probes.txt --output results/probes
  assayview compare --left remote.yaml --right local.yaml --rows probes.txt
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from assayview.cli import inspect, export, save, compare
    inspect.register_parser(subparsers)
    export.register_parser(subparsers)
    save.register_parser(subparsers)
    compare.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, parsed_args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
