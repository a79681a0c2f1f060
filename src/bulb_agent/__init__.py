"""
Smart bulb agent

This package provides:
1. BulbStore — lock-guarded name/color/brightness state
2. RegistrationClient — announces the bulb to its hub on startup
3. create_agent_server — HTTP surface over the store
"""

from .bulb import Bulb, BulbStore, ValidationError
from .registration import RegistrationClient, RegistrationError, RegistrationState
from .server import create_agent_server, start_agent_server

__version__ = '0.1.0'
__all__ = [
    'Bulb',
    'BulbStore',
    'ValidationError',
    'RegistrationClient',
    'RegistrationError',
    'RegistrationState',
    'create_agent_server',
    'start_agent_server',
]
