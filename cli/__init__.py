"""
podsync CLI - Virtual cluster pod syncer

Commands:
- podsync run - Run the syncer operator against the virtual cluster
- podsync config - Validate and show the environment configuration
- podsync version - Show version information
"""

from podsync import __version__

__all__ = ["__version__"]
