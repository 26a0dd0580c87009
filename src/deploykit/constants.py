"""Constants used throughout deploykit.

This module defines the library logger, the well-known container keys the
pipeline resolves its collaborators from, and the environment variables that
tune runtime behaviour.
"""

import logging

LOGGER_NAME: str = "deploykit"
"""Default logger name for the library."""

LOGGER: logging.Logger = logging.getLogger(LOGGER_NAME)
"""Pre-configured logger instance for deploykit diagnostics."""

LIFETIME_SINGLETON: str = "singleton"
"""One instance per container lifetime."""

LIFETIME_TRANSIENT: str = "transient"
"""A new instance on every resolution."""

KEY_CONTAINER: str = "container"
"""The container registers itself under this key."""

KEY_LOGGER: str = "logger"
"""Optional logger override."""

KEY_PROCESSOR: str = "ProcessorService"
"""Variable resolution service."""

KEY_SECRET: str = "SecretManager"
"""Secret resolver consumed by the variable processor."""

KEY_TEMPLATE_MANAGER: str = "template:manager"
"""Template source used by the orchestrator."""

KEY_STACK_MANAGER: str = "pipeline:stack:manager"
"""Stack bridge used by the orchestrator."""

KEY_PIPELINE_MANAGER: str = "pipeline:manager"
"""The orchestrator itself."""

KEY_ENV_EXPOSER: str = "env:exposer"
"""Side channel that publishes final outputs as environment variables."""

ENV_PREFIX: str = "DEPLOYKIT_"
"""Prefix of every environment variable read by :mod:`deploykit.config`."""

ENV_ACTION: str = "DEPLOYKIT_ENV_ACTION"
"""When set to anything but ``EXPOSE``, final outputs are not exposed."""

DEFAULT_ORCHESTRATOR: str = "node"
DEFAULT_TEMPLATE_TYPE: str = "file"
DEFAULT_EXPOSE_PREFIX: str = "DEPLOYKIT_PL"
DEFAULT_EXPOSE_LIMIT: int = 1024
DEFAULT_EXPOSE_QUOTE: str = "§"
