# -*- coding: utf-8 -*-
"""
Per-server review session state shared by the HTTP handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config import ReviewConfig
from .decision import DecisionBroker

AgentsProvider = Callable[[], Awaitable[List[Dict[str, Any]]]]


@dataclass(frozen=True)
class ReviewSession:
    filepath: str
    markdown: str
    base_dir: Path
    project_root: Path
    decision: DecisionBroker
    config: ReviewConfig
    html_content: str
    origin: Optional[str] = None
    sharing_enabled: bool = True
    repo_info: Optional[Dict[str, str]] = None
    agents_provider: Optional[AgentsProvider] = None

    def image_bases(self) -> List[Path]:
        return [self.config.upload_dir, self.config.home_dir, self.base_dir]
