"""Automated AMI refresh: bake, snapshot, retire and clean up on a schedule."""

from .engine import start_engine

__version__ = "1.1.0"
__description__ = "Periodically rebuild AMIs from source images and retire old ones"

__all__ = ["start_engine"]
