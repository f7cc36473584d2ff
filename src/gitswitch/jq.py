"""Field extraction from JSON payloads via jq."""

from __future__ import annotations

import logging
import subprocess

from gitswitch.exceptions import PayloadError

logger = logging.getLogger(__name__)


class JsonQuery:
    def field(self, payload: str, name: str) -> str | None:
        """Return top-level field name of payload as raw text.

        Missing fields and JSON null come back as None.
        """
        try:
            result = subprocess.run(
                ["jq", "-r", f".{name}"],
                input=payload,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise PayloadError(f"Could not run jq: {e}")
        if result.returncode != 0:
            logger.warning(f"jq could not parse payload: {result.stderr.strip()}")
            return None

        value = result.stdout.strip()
        if not value or value == "null":
            return None
        return value
