"""Errors raised across the forecast pipeline."""


class PrimaryChannelFailure(RuntimeError):
    """The primary weather channel failed; no forecast can be produced."""


class StationNotFound(LookupError):
    """No tide station within the configured radius or for the given code."""
