from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure root logging for scripts and notebooks driving a run."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("pmcabc").setLevel(level)
