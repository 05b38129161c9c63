"""
Package entry point.

Allows running the application via:

    python -m agendaplanner

This simply forwards execution to agendaplanner.cli.main().
"""

from agendaplanner.cli import main

if __name__ == "__main__":
    main()
