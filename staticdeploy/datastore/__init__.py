"""
Datastore layer for reading the content database.
"""

from .base_datastore import BaseDatastore
from .mysql_datastore import MySQLDatastore

__all__ = ['BaseDatastore', 'MySQLDatastore']
