"""Schedule Sync.

Synchronizes Google Calendar events into a local store, scrapes each event's
external page, and uses a language model to extract the sessions listed there.
"""

__version__ = "0.1.0"
