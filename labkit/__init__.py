"""Toolkit for linearizability checking, MapReduce, checked serialization and key/value records."""

__version__ = "0.1.0"