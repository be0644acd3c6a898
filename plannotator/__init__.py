# -*- coding: utf-8 -*-
"""
Local review server: present a document for annotation, relay one decision.
"""

from __future__ import annotations

from .config import ReviewConfig, load_config
from .decision import Decision, DecisionBroker
from .server import DocServer, review_document, start_doc_server

__all__ = [
    "Decision",
    "DecisionBroker",
    "DocServer",
    "ReviewConfig",
    "load_config",
    "review_document",
    "start_doc_server",
]
