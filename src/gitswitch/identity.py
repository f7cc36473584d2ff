"""Resolve the profile of the active gh account."""

from __future__ import annotations

import logging
import time
from typing import Callable

from gitswitch.exceptions import IdentityFetchError, PayloadError
from gitswitch.gh import GitHubCLI
from gitswitch.jq import JsonQuery
from gitswitch.models import ResolvedIdentity, RetryPolicy

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Fetches login and numeric id of the active account with bounded retry."""

    def __init__(
        self,
        gh: GitHubCLI,
        jq: JsonQuery,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gh = gh
        self.jq = jq
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def fetch(self, hostname: str) -> str:
        """Fetch the raw /user payload, retrying with a fixed delay.

        Raises:
            IdentityFetchError: After the last attempt fails.
        """
        attempts = self.policy.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self.gh.fetch_user(hostname)
            except IdentityFetchError as e:
                logger.warning(f"Fetching user data failed (attempt {attempt}/{attempts}): {e}")
                if attempt == attempts:
                    break
                self._sleep(self.policy.delay)

        raise IdentityFetchError(
            f"Failed to fetch user data from GitHub API after {attempts} attempts"
        )

    def resolve(self, hostname: str) -> ResolvedIdentity:
        """Return the active account's identity.

        Raises:
            IdentityFetchError: If the API could not be reached.
            PayloadError: If login or id is missing from the response.
        """
        payload = self.fetch(hostname)
        login = self.jq.field(payload, "login")
        user_id = self.jq.field(payload, "id")
        if not login or not user_id:
            raise PayloadError("Could not retrieve authentication data for login or ID")

        try:
            identity = ResolvedIdentity(login=login, id=int(user_id))
        except ValueError:
            raise PayloadError(f"Unexpected user ID in API response: {user_id}")

        logger.info(f"Resolved identity {identity.login} ({identity.id}) on {hostname}")
        return identity
