"""
LMS API Module
Provides the connector to the LMS REST API and the client configuration
"""

from .base_connector import BaseAPIConnector, APIConfig
from .lms_connector import LmsConnector, ROLES
from .config_manager import ClientConfig, load_config

__all__ = [
    # Base classes
    "BaseAPIConnector",
    "APIConfig",

    # LMS backend
    "LmsConnector",
    "ROLES",

    # Configuration
    "ClientConfig",
    "load_config",
]
