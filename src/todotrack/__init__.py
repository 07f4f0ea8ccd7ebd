"""Time tracking on Microsoft To Do tasks over Microsoft Graph."""

__version__ = "0.1.0"
