# ============================================================================
# netshell/__init__.py
# Pipeline Runner for Templated Shell Scripts
# ============================================================================
#
# PURPOSE:
# Runs named pipelines of shell-script steps against local and SSH targets.
# Scripts are templates rendered from a shared variable store; regex
# extraction rules feed each step's output back into that store.
#
# ENTRY POINTS:
# - load_config(path) -> ExecutionConfig
# - Orchestrator(config).execute_all_pipelines()
# - python -m netshell <config.yaml>
#
# ============================================================================

from netshell.config.loader import load_config, load_config_str
from netshell.engine.orchestrator import Orchestrator

__version__ = "0.3.0"

__all__ = ["Orchestrator", "load_config", "load_config_str", "__version__"]
