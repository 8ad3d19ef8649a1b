"""Allow ``python -m strata``."""

import strata.cli as cli

cli.main()
