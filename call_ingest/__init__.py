"""
Call Ingest

Voice platform event ingestion with cached tool-call answers and
write-behind persistence.
"""

__version__ = "1.0.0"
