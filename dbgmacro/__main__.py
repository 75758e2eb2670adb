"""Run the dbgmacro command: `python -m dbgmacro`."""

from .command import main

main()
