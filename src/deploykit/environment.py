import json
import logging
import os
import re
from typing import Any, Mapping, MutableMapping, Optional

from .constants import DEFAULT_EXPOSE_LIMIT, DEFAULT_EXPOSE_PREFIX, DEFAULT_EXPOSE_QUOTE
from .exceptions import ConfigurationError

_logger = logging.getLogger(__name__)

_breaks = re.compile(r"(\r\n|\\r\\n|\r|\n|\\r|\\n|\t|\\t)")
_spaces = re.compile(r"\s+")


class EnvExposer:
    """Publishes a run's final outputs as ``PREFIX_NAME`` environment variables.

    Args:
        prefix: Variable prefix; upper-cased, joined to names with ``_``.
        limit: Maximum length of a value.
        quote: Replacement for ``"`` so values survive shell quoting.
        environ: Mapping written to instead of ``os.environ``.
    """

    def __init__(self, prefix: str = DEFAULT_EXPOSE_PREFIX, limit: int = DEFAULT_EXPOSE_LIMIT,
                 quote: str = DEFAULT_EXPOSE_QUOTE, environ: Optional[MutableMapping[str, str]] = None,
                 logger: Any = None):
        self.prefix = (prefix or "").strip().upper()
        self.limit = limit
        self.quote = quote
        self.environ = os.environ if environ is None else environ
        self.logger = logger or _logger

    def expose(self, content: Mapping[str, Any], prefix: Optional[str] = None, flow: Optional[str] = None) -> dict:
        """Write every truthy value of *content*.

        Returns:
            The ``name -> value`` pairs that were written.

        Raises:
            ConfigurationError: If *content* is not a mapping.
        """
        if not isinstance(content, Mapping):
            raise ConfigurationError("Invalid content provided. Expected a mapping.")
        written = {}
        for name, raw in content.items():
            if not raw:
                continue
            key = self.sanitize_key(str(name), prefix)
            value = self.sanitize_value(raw)
            self.environ[key] = value
            written[key] = value
            self.logger.info("Exposing environment variable %s", key, extra={"flow": flow, "src": "Env:expose", "data": {"key": key}})
        return written

    def sanitize_key(self, key: str, prefix: Optional[str] = None) -> str:
        pfx = prefix.strip().upper() if prefix is not None else self.prefix
        if not pfx:
            return key
        return f"{pfx}_{key.strip().upper()}"

    def sanitize_value(self, value: Any) -> str:
        val = value if isinstance(value, str) else json.dumps(value, default=str)
        val = _spaces.sub(" ", _breaks.sub(" ", val))
        val = val.replace('"', self.quote).strip()
        return val[: self.limit] if len(val) > self.limit else val
