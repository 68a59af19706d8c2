"""Allow ``python -m tether``."""

from __future__ import annotations

from tether.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
