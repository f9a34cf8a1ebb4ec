"""
Configuration Data Models

Data structures passed from the config handler to the API handler.
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass

DEFAULT_LOG_BATCH_SIZE = 5000
DEFAULT_MAX_LOG_LINES = 100000


@dataclass
class ConnectionSettings:
    """How to reach the cluster API."""
    base_url: str
    api_token_id: Optional[str] = None
    api_token_secret: Optional[str] = None
    verify_ssl: bool = True
    timeout: float = 10.0
    log_batch_size: int = DEFAULT_LOG_BATCH_SIZE
    max_log_lines: int = DEFAULT_MAX_LOG_LINES

    def __post_init__(self):
        """Normalize the base URL and keep paging limits sane."""
        self.base_url = (self.base_url or "").rstrip("/")
        self.log_batch_size = max(1, int(self.log_batch_size))
        self.max_log_lines = max(1, int(self.max_log_lines))

    @property
    def api_root(self) -> str:
        return f"{self.base_url}/api2/json"

    @property
    def auth_header(self) -> Optional[str]:
        """PVE API token header value, or None when no token is configured."""
        if not self.api_token_id or not self.api_token_secret:
            return None
        return f"PVEAPIToken={self.api_token_id}={self.api_token_secret}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary. The secret is masked."""
        return {
            'base_url': self.base_url,
            'api_token_id': self.api_token_id,
            'api_token_secret': '***' if self.api_token_secret else None,
            'verify_ssl': self.verify_ssl,
            'timeout': self.timeout,
            'log_batch_size': self.log_batch_size,
            'max_log_lines': self.max_log_lines,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConnectionSettings':
        """Create from a config settings dictionary."""
        return cls(
            base_url=data.get('base_url') or '',
            api_token_id=data.get('api_token_id'),
            api_token_secret=data.get('api_token_secret'),
            verify_ssl=bool(data.get('verify_ssl', True)),
            timeout=float(data.get('timeout') or 10.0),
            log_batch_size=data.get('log_batch_size') or DEFAULT_LOG_BATCH_SIZE,
            max_log_lines=data.get('max_log_lines') or DEFAULT_MAX_LOG_LINES,
        )
