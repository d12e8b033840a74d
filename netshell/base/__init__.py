"""Module __init__: process-level runtime settings for netshell."""
#
# PURPOSE:
# Marks the "base" directory as a package holding the settings everything
# else is configured from.
#
# WHAT'S IN THIS MODULE:
# - config.py: execution defaults, logging configuration, NETSHELL_* env
#   overrides and setup_logging()
#
