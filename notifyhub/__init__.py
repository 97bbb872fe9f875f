"""Pluggable notification dispatch for push gateways and chat bots."""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
