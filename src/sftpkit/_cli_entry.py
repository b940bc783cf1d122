"""Entry point of the ``sftpkit`` console script.

The library installs without click; the remote-shell commands only load
when the ``cli`` extra is present.
"""

import sys

_MISSING_CLICK = (
    "sftpkit: the ls/get/put/... commands need click, which is not installed.\n"
    "Add the command-line extra:  pip install 'sftpkit[cli]'"
)


def main(argv=None):
    try:
        from .cli import main as commands
    except ImportError as exc:
        if exc.name != "click":
            raise
        sys.stderr.write(_MISSING_CLICK + "\n")
        return 1
    return commands.main(args=argv, prog_name="sftpkit")
