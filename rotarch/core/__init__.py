"""
Core components of rotarch: configuration, exceptions, type aliases,
parameter validation and result containers.
"""

import logging

logger = logging.getLogger("rotarch.core")
