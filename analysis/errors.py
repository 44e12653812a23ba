#!/usr/bin/env python3
"""Exceptions raised by the yield engine."""


class YieldEngineError(Exception):
    """Base class for engine errors."""


class DataUnavailableError(YieldEngineError):
    """A protocol data source could not provide opportunities."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class InvalidArgumentError(YieldEngineError, ValueError):
    """Top-level call arguments are malformed."""


class InvalidPreferencesError(InvalidArgumentError):
    """Optimization preferences failed validation."""


class UnsupportedChainError(YieldEngineError, ValueError):
    """A chain id is absent from the supported-chain registry."""

    def __init__(self, chain_id):
        super().__init__(f"Unsupported chain id: {chain_id}")
        self.chain_id = chain_id
