"""HTTP API for the call ingestion service"""
