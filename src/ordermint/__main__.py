"""Allow ``python -m ordermint``."""

from ordermint.cli import main

raise SystemExit(main())
