"""Allow running tscwatch as ``python -m tscwatch``."""

import tscwatch.cli as cli

if __name__ == "__main__":
    cli.main()
