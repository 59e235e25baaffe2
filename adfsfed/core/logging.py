"""Logging for adfsfed and its Microsoft Graph traffic.

Every Graph call made through LoggingClient becomes a GraphExchange. The
exchanges of one federation run are gathered in a FlowRecord, which the
CLI can write out with --protocol-log.

Levels:
- ERROR: failed calls only
- INFO: workflow milestones (domain created, verified, federated)
- DEBUG: one block per Graph call with headers and timing
- TRACE: request and response bodies, unredacted when --trace is given
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from pathlib import Path
from typing import Any

import httpx

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

package_logger = logging.getLogger("adfsfed")
logger = logging.getLogger("adfsfed.protocol")

# Bodies longer than this are cut in log output
BODY_LOG_LIMIT = 2000


class LogLevel(IntEnum):
    """Verbosity of adfsfed logging."""

    ERROR = logging.ERROR
    INFO = logging.INFO
    DEBUG = logging.DEBUG
    TRACE = TRACE


_FORM_SECRETS = ("client_secret", "password", "access_token", "refresh_token")
_JSON_SECRETS = (*_FORM_SECRETS, "signingCertificate")

# (pattern, replacement) pairs applied in order
SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    *((re.compile(rf"({name}=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]") for name in _FORM_SECRETS),
    *((re.compile(rf'"({name})"\s*:\s*"[^"]+"'), r'"\1": "[REDACTED]"') for name in _JSON_SECRETS),
    (re.compile(r"((?:Authorization:\s*)?(?:Bearer|Basic)\s+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
]


def redact_sensitive(text: str) -> str:
    """Mask tokens, passwords, client secrets and certificate blobs in text."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _clip(body: str) -> str:
    if len(body) <= BODY_LOG_LIMIT:
        return body
    return body[:BODY_LOG_LIMIT] + "..."


@dataclass
class GraphExchange:
    """One HTTP request to the directory and what came back."""

    seq: int
    method: str
    url: str
    request_headers: dict[str, str]
    request_body: str | None = None
    status: int | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str | None = None
    elapsed_ms: float | None = None
    error: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def summary(self, reveal: bool = False) -> str:
        url = self.url if reveal else redact_sensitive(self.url)
        outcome = self.status if self.status is not None else "ERROR"
        line = f"HTTP {self.method} {url} -> {outcome}"
        if self.elapsed_ms is not None:
            line += f" ({self.elapsed_ms:.1f}ms)"
        return line

    def describe(self, level: LogLevel, reveal: bool = False) -> str:
        """Render the exchange with as much detail as the level allows."""
        show = (lambda value: value) if reveal else redact_sensitive
        lines = [self.summary(reveal)]
        if self.error:
            lines.append(f"  Error: {self.error}")

        if level <= LogLevel.DEBUG:
            for title, headers in (
                ("Request Headers", self.request_headers),
                ("Response Headers", self.response_headers),
            ):
                if headers:
                    lines.append(f"  {title}:")
                    lines.extend(f"    {name}: {show(value)}" for name, value in headers.items())

        if level <= LogLevel.TRACE:
            for title, body in (("Request Body", self.request_body), ("Response Body", self.response_body)):
                if body:
                    lines.append(f"  {title}:")
                    lines.append(f"    {_clip(show(body))}")

        return "\n".join(lines)

    def to_dict(self, reveal: bool = False) -> dict[str, Any]:
        show = (lambda value: value) if reveal else redact_sensitive
        return {
            "seq": self.seq,
            "started_at": self.started_at.isoformat(),
            "method": self.method,
            "url": show(self.url),
            "status": self.status,
            "elapsed_ms": self.elapsed_ms,
            "error": self.error,
            "request_headers": {k: show(v) for k, v in self.request_headers.items()},
            "request_body": show(self.request_body) if self.request_body else None,
            "response_headers": {k: show(v) for k, v in self.response_headers.items()},
            "response_body": show(self.response_body) if self.response_body else None,
        }


@dataclass
class FlowRecord:
    """The Graph exchanges of one federation run."""

    name: str
    exchanges: list[GraphExchange] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    def to_dict(self, reveal: bool = False) -> dict[str, Any]:
        return {
            "name": self.name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "exchanges": [exchange.to_dict(reveal) for exchange in self.exchanges],
        }

    def write(self, path: Path, reveal: bool = False) -> None:
        """Write the record as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(reveal), indent=2))


class ProtocolLogger:
    """Decides how Graph exchanges are logged and collects them per run."""

    def __init__(self, level: LogLevel = LogLevel.INFO, trace_enabled: bool = False) -> None:
        self.level = level
        self.trace_enabled = trace_enabled
        self.current_flow: FlowRecord | None = None
        self.last_flow: FlowRecord | None = None

    @property
    def effective_level(self) -> LogLevel:
        """TRACE is downgraded to DEBUG unless explicitly enabled."""
        if self.level <= LogLevel.TRACE and not self.trace_enabled:
            return LogLevel.DEBUG
        return self.level

    @property
    def reveal_sensitive(self) -> bool:
        return self.trace_enabled and self.level <= LogLevel.TRACE

    @contextmanager
    def flow(self, name: str) -> Iterator[FlowRecord]:
        """Collect the exchanges made inside the block.

        The record stays available as ``last_flow`` after the block exits,
        including when it exits with an exception.
        """
        record = FlowRecord(name=name)
        self.current_flow = record
        logger.debug(f"Recording Graph exchanges for {name}")
        try:
            yield record
        finally:
            record.finished_at = datetime.now(UTC)
            self.current_flow = None
            self.last_flow = record
            logger.debug(f"{name}: {len(record.exchanges)} Graph exchanges")

    def record(self, exchange: GraphExchange) -> None:
        """Attach an exchange to the current run and log it."""
        if self.current_flow is not None:
            self.current_flow.exchanges.append(exchange)

        level = self.effective_level
        if level <= LogLevel.DEBUG:
            logger.debug(exchange.describe(level, self.reveal_sensitive))
        if exchange.error:
            logger.error(f"Graph call failed: {exchange.summary()}: {exchange.error}")


class LoggingClient(httpx.Client):
    """httpx.Client that reports every request to a ProtocolLogger."""

    def __init__(self, protocol_logger: ProtocolLogger | None = None, **kwargs: Any) -> None:
        self.protocol_logger = protocol_logger or get_protocol_logger()
        self._seq = 0
        super().__init__(**kwargs)

    def _exchange_for(self, request: httpx.Request) -> GraphExchange:
        self._seq += 1
        return GraphExchange(
            seq=self._seq,
            method=request.method,
            url=str(request.url),
            request_headers=dict(request.headers),
            request_body=request.content.decode("utf-8", errors="replace") if request.content else None,
        )

    def request(self, method: str, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:  # type: ignore[override]
        # send() options, not accepted by build_request()
        auth = kwargs.pop("auth", httpx.USE_CLIENT_DEFAULT)
        follow_redirects = kwargs.pop("follow_redirects", httpx.USE_CLIENT_DEFAULT)

        request = self.build_request(method, url, **kwargs)
        exchange = self._exchange_for(request)
        started = time.perf_counter()
        try:
            response = self.send(request, auth=auth, follow_redirects=follow_redirects)
        except httpx.HTTPError as e:
            exchange.error = str(e)
            raise
        else:
            exchange.status = response.status_code
            exchange.response_headers = dict(response.headers)
            exchange.response_body = response.content.decode("utf-8", errors="replace") or None
            return response
        finally:
            exchange.elapsed_ms = (time.perf_counter() - started) * 1000
            self.protocol_logger.record(exchange)


_protocol_logger: ProtocolLogger | None = None


def get_protocol_logger() -> ProtocolLogger:
    """Return the process-wide ProtocolLogger, creating it on first use."""
    global _protocol_logger
    if _protocol_logger is None:
        _protocol_logger = ProtocolLogger()
    return _protocol_logger


def set_protocol_logger(protocol_logger: ProtocolLogger) -> None:
    global _protocol_logger
    _protocol_logger = protocol_logger


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    trace_enabled: bool = False,
    log_file: str | None = None,
) -> ProtocolLogger:
    """Set up the adfsfed loggers and install a matching ProtocolLogger.

    Args:
        level: ERROR, INFO, DEBUG or TRACE, as a LogLevel or its name.
        trace_enabled: Allow TRACE to log unredacted bodies.
        log_file: Also write log records to this file.

    Returns:
        The new global ProtocolLogger.
    """
    if isinstance(level, str):
        level = LogLevel.__members__.get(level.upper(), LogLevel.INFO)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    package_logger.handlers.clear()
    package_logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    protocol_logger = ProtocolLogger(level=level, trace_enabled=trace_enabled)
    set_protocol_logger(protocol_logger)

    if trace_enabled:
        package_logger.warning("TRACE logging enabled: request bodies and tokens will be logged unredacted")

    return protocol_logger
