"""
ReliefDesk - Disaster-recovery case management backend.

Tracks clients, their households and properties, funding opportunities and
the grant-application lifecycle of opportunity matches, exposed through a
REST API, an API client and a terminal CLI.
"""

__version__ = "0.1.0"
__app_name__ = "reliefdesk"
