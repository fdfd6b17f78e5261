"""
Configuration for the forwarder runner.

Loads settings from environment variables with sensible defaults.
All Splunk paths are derived from SPLUNK_HOME.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlencode

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

HEALTH_ENDPOINT = "/services/server/health/splunkd/details"


@dataclass
class Config:
    """Runner configuration."""

    # Splunk installation
    splunk_home: Path = Path(os.environ.get("SPLUNK_HOME", "/opt/splunkforwarder"))
    splunk_bin: Path = None
    splunkd_log: Path = None
    user_seed_path: Path = None

    # Management API
    splunk_user: str = os.environ.get("SPLUNK_USER", "admin")
    splunk_password: str = os.environ.get("SPLUNK_PASSWORD", "")
    splunk_mgmt_host: str = os.environ.get("SPLUNK_MGMT_HOST", "127.0.0.1:8089")
    health_timeout: float = float(os.environ.get("HEALTH_TIMEOUT", "5.0"))
    health_url: str = None

    # Server
    host: str = os.environ.get("RUNNER_HOST", "0.0.0.0")
    port: int = int(os.environ.get("RUNNER_PORT", "8090"))

    # Process management
    restart_delay: float = float(os.environ.get("RESTART_DELAY", "5"))
    stop_timeout: float = float(os.environ.get("STOP_TIMEOUT", "10"))
    tail_path: str = os.environ.get("TAIL_PATH", "/usr/bin/tail")

    # Logging
    log_file: str = os.environ.get("RUNNER_LOG", "")
    log_max_bytes: int = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    log_backup_count: int = int(os.environ.get("LOG_BACKUP_COUNT", "5"))

    def __post_init__(self):
        """Initialize derived paths."""
        self.splunk_home = Path(self.splunk_home)
        self.splunk_bin = self.splunk_home / "bin" / "splunk"
        self.splunkd_log = self.splunk_home / "var" / "log" / "splunk" / "splunkd.log"
        self.user_seed_path = self.splunk_home / "etc" / "system" / "local" / "user-seed.conf"
        self.health_url = (
            f"http://{self.splunk_mgmt_host}{HEALTH_ENDPOINT}"
            f"?{urlencode({'output_mode': 'json'})}"
        )

    def get_password(self) -> str:
        """Get the admin password, falling back to the generated user seed."""
        if self.splunk_password:
            return self.splunk_password
        try:
            for line in self.user_seed_path.read_text().splitlines():
                key, sep, value = line.partition("=")
                if sep and key.strip() == "PASSWORD":
                    return value.strip()
        except FileNotFoundError:
            logger.warning(f"User seed {self.user_seed_path} not found, using empty password")
        return ""


config = Config()
