"""
The arbor executable.

Tools come from every .arbor.py file and .arbor/ directory found from the
working directory up to the filesystem root (nearest first), then from the
directories listed in ARBOR_PATH.
"""
import logging
import os
import sys

from rich.logging import RichHandler

from .cli import CLI
from .faults import console

ENV_PATH = "ARBOR_PATH"


def main(argv=None):
    logging.getLogger("arbor").addHandler(RichHandler(console=console, show_path=False))

    cli = CLI("arbor")
    cli.add_search_path_hierarchy()
    for directory in filter(None, os.environ.get(ENV_PATH, "").split(os.pathsep)):
        cli.add_search_path(directory)
    return cli.run(*(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    sys.exit(main())
