"""
Stream Recorder

Records live streams of favourite models with rtmpdump, supervising each
capture process and keeping only recordings of useful size.
"""

__version__ = "1.0.0"

from .utils.config import load_config, Config
from .utils.logger import setup_logging, get_logger
from .main import Recorder, ScanLoop, main

__all__ = [
    'load_config',
    'Config',
    'setup_logging',
    'get_logger',
    'Recorder',
    'ScanLoop',
    'main',
]
