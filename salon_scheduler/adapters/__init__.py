"""
Adapters layer - Catalog, staff directory and appointment store.
"""

from .sql_store import SqlAppointmentStore, create_store_engine
from .static_directory import StaticDirectory

__all__ = ["SqlAppointmentStore", "StaticDirectory", "create_store_engine"]
