# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
License gate for GhostChat.

Validates a license key against the license server with a single POST
and resolves the tier the session runs at. Every failure (no key,
transport error, bad status, malformed body, rejected key) resolves to
the free tier. Failures are logged, never raised, and never retried.

Version: 1.0.0
"""

from dataclasses import dataclass
from typing import Optional
import logging

import httpx

from ghostchat.config import DEFAULT_LICENSE_API_URL, DEFAULT_REQUEST_TIMEOUT
from ghostchat.http import TRANSPORT_ERRORS, client_session
from ghostchat.tiers import Tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LicenseResult:
    """
    Outcome of a license validation.

    Attributes:
        valid: Whether the server accepted the key
        tier: Tier the session should run at
    """

    valid: bool
    tier: Tier

    @classmethod
    def fallback(cls) -> "LicenseResult":
        return cls(valid=False, tier=Tier.FREE)


@dataclass
class License:
    """
    A license key and its resolution.

    Resolved once per session; never re-validated.
    """

    key: Optional[str] = None
    valid: bool = False
    tier: Tier = Tier.FREE
    resolved: bool = False

    async def resolve(self, gate: "LicenseGate") -> "License":
        """Resolve against `gate` unless already resolved."""
        if self.resolved:
            return self
        result = await gate.resolve_tier(self.key)
        self.valid = result.valid
        self.tier = result.tier
        self.resolved = True
        return self


class LicenseGate:
    """
    Client for the license validation endpoint.

    Example:
        gate = LicenseGate("https://licenses.example.com/api/validate-license")
        result = await gate.resolve_tier("GC-1234")
        if result.valid:
            print(f"Running at {result.tier.value} tier")
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_LICENSE_API_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the gate.

        Args:
            endpoint: License validation URL
            timeout: Request timeout in seconds
            client: Optional shared httpx client
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    async def resolve_tier(self, key: Optional[str]) -> LicenseResult:
        """
        Validate `key` and resolve its tier.

        Args:
            key: License key, or None

        Returns:
            LicenseResult; (False, FREE) on any failure
        """
        if not key:
            logger.info("No license key - using free tier")
            return LicenseResult.fallback()

        try:
            async with client_session(self._client, self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    json={"licenseKey": key},
                    headers={"Content-Type": "application/json"},
                )
        except TRANSPORT_ERRORS as e:
            logger.error(f"License API connection failed: {e}")
            return LicenseResult.fallback()

        if response.status_code != 200:
            logger.error(f"License API error: {response.status_code}")
            return LicenseResult.fallback()

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"License validation error: {e}")
            return LicenseResult.fallback()

        result = self._parse_body(data)
        if result.valid:
            logger.info(f"License validated: {result.tier.value} tier")
        else:
            logger.warning("Invalid license - falling back to free tier")
        return result

    @staticmethod
    def _parse_body(data) -> LicenseResult:
        """Interpret a ``{valid, tier}`` body."""
        if not isinstance(data, dict):
            return LicenseResult.fallback()

        valid = data.get("valid")
        tier_name = data.get("tier")
        if valid is not True:
            return LicenseResult.fallback()

        tier = Tier.from_name(tier_name)
        if tier is None:
            logger.error(f"License API returned unknown tier {tier_name!r}")
            return LicenseResult.fallback()

        return LicenseResult(valid=True, tier=tier)
