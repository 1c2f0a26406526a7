import logging
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level=None, format_string=LOG_FORMAT):
    """Configures basic logging to stdout.

    The level defaults to the ``DYNALYSIS_LOG_LEVEL`` environment variable
    (a level name such as ``DEBUG``), falling back to ``INFO``.
    """
    if level is None:
        level = os.environ.get("DYNALYSIS_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout
    )

# Setup logging when this module is imported
setup_logging()

# Package-wide logger; sweep workers and engines all log through it
logger = logging.getLogger("dynalysis")
