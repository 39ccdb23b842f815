"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
replay
    Applied to end-to-end tests that run a whole trace through
    ``ReplayDriver`` or the command line and write topology files into a
    temporary directory.  Deselect with ``-m "not replay"`` for a quick run
    of the unit tests only.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.
"""


def pytest_configure(config):
    """
    Configure pytest before test collection begins.
    """
    config.addinivalue_line(
        "markers",
        "replay: end-to-end trace replay writing files to a temporary directory",
    )
