"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
slow
    Applied to tests that run the full ordering search on forests large
    enough to take several seconds.  Deselect with ``-m "not slow"``.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.
"""

import logging


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    Registers custom marks and lowers the package's import-time INFO output
    to warnings so test logs stay readable.
    """
    config.addinivalue_line(
        "markers",
        "slow: full ordering search on larger forests (deselect with -m 'not slow')",
    )
    logging.getLogger("fusionet").setLevel(logging.WARNING)
