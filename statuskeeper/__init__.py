"""
StatusKeeper - A status page backend for monitoring HTTP services.

This package probes configured services on a schedule, keeps a rolling
history of their health, summarises availability for status pages and
sends notifications when a service starts failing.
"""

__version__ = "0.1.0"
