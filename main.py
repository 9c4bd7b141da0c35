"""Thin shim for IDEs and direct execution."""

from feed_discover.cli import main

if __name__ == "__main__":
    import sys

    # With no arguments, browse the bundled catalog using the sample config.
    if len(sys.argv) == 1:
        sys.argv.extend(["--config", "configs/config.xml", "browse"])

    sys.exit(main())
