"""
Tally Bootstrap — App Configuration
=====================================
Verifies the ledger when Django finishes loading.

Skipped when:
- running a setup command (tables may not exist yet)
- running under pytest (tests build their own ledgers)
- TALLY_SKIP_BOOTSTRAP is set in the environment

Otherwise a failed check raises SystemBootstrapError and the
process does not start.
"""

import logging
import os
import sys

from django.apps import AppConfig

logger = logging.getLogger("tally.bootstrap")

SETUP_COMMANDS = frozenset({
    "migrate",
    "makemigrations",
    "showmigrations",
    "sqlmigrate",
    "shell",
    "dbshell",
    "test",
    "check",
})


def should_skip_bootstrap(argv=None, environ=None) -> bool:
    argv = sys.argv if argv is None else argv
    environ = os.environ if environ is None else environ
    if environ.get("TALLY_SKIP_BOOTSTRAP"):
        return True
    if "PYTEST_CURRENT_TEST" in environ or "pytest" in sys.modules:
        return True
    return len(argv) >= 2 and argv[1] in SETUP_COMMANDS


class BootstrapConfig(AppConfig):
    name = "core.bootstrap"
    label = "tally_bootstrap"
    verbose_name = "Tally Bootstrap"

    def ready(self):
        if should_skip_bootstrap():
            logger.info("Bootstrap self-check skipped.")
            return

        from core.bootstrap.self_check import run_bootstrap_checks
        run_bootstrap_checks()
