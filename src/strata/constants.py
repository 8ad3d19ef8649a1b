"""
Shared constants for Strata.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Values directory layout
DEFAULT_BASE_FILE = "values.yaml"
"""Base layer, relative to the values directory. Always required."""

DEFAULT_ENVIRONMENT_FILE = "environments/{environment}/values.yaml"
"""Environment layer template. ``{environment}`` is substituted."""

DEFAULT_INSTANCE_FILE = "environments/{environment}/{instance}/values.yaml"
"""Instance layer template. ``{environment}`` and ``{instance}`` are substituted."""

# Layer names shown in provenance output
BASE_LAYER = "base"
ENVIRONMENT_LAYER = "environment"
INSTANCE_LAYER = "instance"
SET_LAYER = "set"
"""Layer built from ``--set key=value`` arguments (highest precedence)."""

# Output defaults
DEFAULT_OUTPUT_FORMAT = "yaml"
DEFAULT_INDENT = 2
