"""Email notifier — sends one summary email per check run with failures.

Uses the Resend-style HTTP API directly via httpx: a single bearer-token
POST carrying sender, recipients, subject and an HTML body. Sending is
best-effort; failures are logged and never raised.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from statusboard.config import Settings
from statusboard.health.engine import ProbeOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailConfig:
    api_key: str
    sender: str
    recipients: tuple[str, ...]
    api_url: str
    subject: str


class EmailNotifier:
    """Sends failure summaries by email.

    Explicit constructor arguments win; anything left empty is read from
    the environment on every send, so rotating the key does not need a
    restart. Without an API key the notifier is silently disabled.
    """

    def __init__(
        self,
        api_key: str = "",
        sender: str = "",
        recipient: str = "",
        api_url: str = "",
        subject: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._recipient = recipient
        self._api_url = api_url
        self._subject = subject
        self._client = client

    def config(self) -> EmailConfig:
        env = Settings()
        recipient = self._recipient or env.notify_to
        return EmailConfig(
            api_key=self._api_key or env.resend_api_key,
            sender=self._sender or env.notify_from,
            recipients=tuple(r.strip() for r in recipient.split(",") if r.strip()),
            api_url=self._api_url or env.notify_api_url,
            subject=self._subject or env.notify_subject,
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.config().api_key)

    def status(self) -> dict[str, Any]:
        cfg = self.config()
        return {
            "enabled": bool(cfg.api_key),
            "from": cfg.sender,
            "to": list(cfg.recipients),
        }

    # -- High-level notification methods ------------------------------------

    async def notify_failures(self, failures: Sequence[ProbeOutcome]) -> bool:
        """Send one email listing every failed endpoint.

        Does nothing (and returns False) when there are no failures or no
        API key is configured.
        """
        if not failures:
            return False
        cfg = self.config()
        if not cfg.api_key:
            logger.debug("Email: skipping send (no API key configured)")
            return False

        subject = f"{cfg.subject} ({len(failures)})"
        return await self._send(cfg, subject, format_failures_html(failures))

    # -- Low-level dispatch -------------------------------------------------

    async def _send(self, cfg: EmailConfig, subject: str, body_html: str) -> bool:
        payload = {
            "from": cfg.sender,
            "to": list(cfg.recipients),
            "subject": subject,
            "html": body_html,
        }
        headers = {"Authorization": f"Bearer {cfg.api_key}"}
        try:
            if self._client is not None:
                resp = await self._client.post(cfg.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=10) as client:
                    resp = await client.post(cfg.api_url, json=payload, headers=headers)
        except Exception as exc:
            logger.warning("Email notification failed: %s", exc)
            return False

        if not resp.is_success:
            logger.warning("Email API returned %d: %s", resp.status_code, resp.text[:200])
            return False
        logger.info("Email: failure summary sent to %s", ", ".join(cfg.recipients))
        return True


def format_failures_html(failures: Sequence[ProbeOutcome]) -> str:
    """Render the failed outcomes as a small HTML document."""
    items = []
    for f in failures:
        line = (
            f"<li><strong>{html.escape(f.name)}</strong> "
            f"({html.escape(f.method)} {html.escape(f.url)}): "
            f"{html.escape(f.status.value)}"
        )
        if f.status_code is not None:
            line += f" [{f.status_code}]"
        if f.error_message:
            line += f" - {html.escape(f.error_message)}"
        items.append(line + "</li>")

    return (
        "<h2>Endpoint health check failures</h2>"
        f"<p>{len(failures)} endpoint(s) failed their latest check:</p>"
        f"<ul>{''.join(items)}</ul>"
    )
