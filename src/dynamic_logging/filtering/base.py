"""
Base classes for log call filtering
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models import LogConfig


@dataclass
class FilterResult:
    """Result of log filtering operation"""

    should_log: bool
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class LogFilter(ABC):
    """Abstract base class for log call filters"""

    @abstractmethod
    def should_log(self, config: LogConfig, context: Dict[str, Any]) -> FilterResult:
        """Determine if a log call should be emitted"""
        pass
