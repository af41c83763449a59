"""Global pytest configuration.

The perfiter plugin is not auto-loaded; plugin tests enable it explicitly in
their pytester sessions with ``-p perfiter.pytest_plugin``.
"""

import os

pytest_plugins = ["pytester"]

# Keep engine runs in the test suite short unless a test overrides the limits.
os.environ.setdefault("PERFITER_MAX_TOTAL_MILLISECONDS", "1000")
