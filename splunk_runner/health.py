"""
Splunkd health polling.

Fetches the recursive health document from the splunkd management API and
flattens it into a mapping of component path to status. The last successfully
decoded snapshot is kept when a poll fails.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import Config

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"


def sanitize(name: str) -> str:
    """Strip spaces and hyphens from a component name."""
    return name.replace(" ", "").replace("-", "")


class Reason(BaseModel):
    indicator: str = ""
    reason: str = ""


class HealthStatus(BaseModel):
    """Health of a single component."""

    health: Optional[str] = None
    reasons: Optional[dict[str, Any]] = None

    @property
    def healthy(self) -> bool:
        return self.health == "green"

    @property
    def reason(self) -> Optional[Reason]:
        """Primary reason, keyed "1" either directly or under a colour."""
        if not self.reasons:
            return None
        entry = self.reasons.get("1")
        if entry is None:
            for value in self.reasons.values():
                if isinstance(value, dict) and "1" in value:
                    entry = value["1"]
                    break
        if not isinstance(entry, dict):
            return None
        try:
            return Reason.model_validate(entry)
        except ValidationError:
            return None


class HealthNode(HealthStatus):
    """A component and its nested features."""

    features: dict[str, "HealthNode"] = Field(default_factory=dict)

    @field_validator("features", mode="before")
    @classmethod
    def _null_features(cls, value):
        return {} if value is None else value

    @property
    def status(self) -> HealthStatus:
        return HealthStatus(health=self.health, reasons=self.reasons)

    def flatten(self, prefix: tuple[str, ...] = ()) -> dict[str, HealthStatus]:
        """Map every descendant's slash-joined sanitized path to its status.

        The node itself is not included. Siblings that sanitize to the same
        name overwrite each other, last one wins.
        """
        out: dict[str, HealthStatus] = {}
        for name, child in self.features.items():
            path = prefix + (sanitize(name),)
            out[PATH_SEPARATOR.join(path)] = child.status
            out.update(child.flatten(path))
        return out


HealthNode.model_rebuild()


class HealthEntry(BaseModel):
    content: Optional[HealthNode] = None


class HealthDocument(BaseModel):
    """Response of the health details endpoint."""

    entry: list[HealthEntry] = Field(default_factory=list)

    def first_content(self) -> Optional[HealthNode]:
        for item in self.entry:
            if item.content is not None:
                return item.content
        return None


class HealthMonitor:
    """Polls splunkd health and keeps the last good flattened snapshot."""

    def __init__(
        self,
        url: str,
        auth: Optional[tuple[str, str]] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.auth = auth
        self.timeout = timeout
        self._transport = transport
        self._lock = threading.Lock()
        self._snapshot: dict[str, HealthStatus] = {}
        self.last_checked: Optional[datetime] = None
        self.last_success: Optional[datetime] = None

    @classmethod
    def from_config(cls, cfg: Config) -> "HealthMonitor":
        return cls(
            cfg.health_url,
            auth=(cfg.splunk_user, cfg.get_password()),
            timeout=cfg.health_timeout,
        )

    def snapshot(self) -> dict[str, HealthStatus]:
        """Copy of the last successfully flattened health tree."""
        with self._lock:
            return dict(self._snapshot)

    def check(self) -> bool:
        """Poll splunkd once. Returns whether the root component is healthy."""
        self.last_checked = datetime.now()
        content = self._fetch()
        if content is None:
            return False

        flattened = content.flatten()
        with self._lock:
            self._snapshot = flattened
            self.last_success = datetime.now()

        if not content.healthy:
            reason = content.reason
            if reason:
                logger.info(f"splunkd health is {content.health}: {reason.indicator}: {reason.reason}")
            else:
                logger.info(f"splunkd health is {content.health}")
        return content.healthy

    def _fetch(self) -> Optional[HealthNode]:
        try:
            with httpx.Client(auth=self.auth, timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.url)
        except httpx.HTTPError as e:
            logger.warning(f"Health endpoint request failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Health endpoint returned {response.status_code}")
            return None

        try:
            document = HealthDocument.model_validate_json(response.content)
        except ValidationError as e:
            logger.warning(f"Failed parsing health endpoint response: {e}")
            return None

        content = document.first_content()
        if content is None:
            logger.warning("Health endpoint response has no content")
        return content
