"""Allow running as ``python -m blueprints_mcp``."""

from blueprints_mcp.cli import main

if __name__ == "__main__":
    main()
