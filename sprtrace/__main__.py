"""
Command-line entry point.

    sprtrace TRACE
    python -m sprtrace TRACE

Replays TRACE and writes one NEWICK file per reconstructed topology under
``replay/`` in the working directory.  Exit status is 0 on success and 1 on
any replay error; files written before the error are kept.
"""

import argparse
import logging
from typing import List, Optional

from sprtrace._errors import ReplayError
from sprtrace._replay import DEFAULT_OUTPUT_DIR, replay_file

logger = logging.getLogger("sprtrace")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sprtrace",
        description="Replay an SPR search trace and write every visited topology "
        f"to {DEFAULT_OUTPUT_DIR}/.",
    )
    parser.add_argument("trace", help="Path to the trace file")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        replay_file(args.trace)
    except ReplayError as error:
        logger.error("%s: %s", type(error).__name__, error)
        return 1
    except (OSError, UnicodeDecodeError) as error:
        logger.error("Cannot read trace: %s", error)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
