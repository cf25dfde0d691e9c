"""Streaming proxy and client for the investment advisor chat."""
