from __future__ import annotations

import logging

from support_analytics.api_server import create_app
from support_analytics.config import log_level

logging.basicConfig(
    level=log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
