import logging
import sys
from datetime import datetime, timezone

import requests

from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()


class SlackErrorHandler(logging.Handler):
    """Posts ERROR and CRITICAL records to a Slack webhook"""

    def __init__(self, webhook: str | None = None):
        super().__init__(level=logging.ERROR)
        self.webhook = webhook if webhook is not None else configs.SLACK_WEBHOOK_URL
        self.environment = configs.APPLICATION_ENVIRONMENT.upper()
        self.enabled = bool(self.webhook)

    def build_text(self, record) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        lines = [
            f":mag: {self.environment}-MONITOR pharmalync-payments",
            "",
            f"- :clock1: Timestamp: {ts}",
            f"- :triangular_flag_on_post: Level: **{record.levelname}**",
            f"- :warning: Logger: {record.name}",
            f"- :pushpin: Function: {record.funcName}:{record.lineno}",
        ]
        payment_id = getattr(record, 'payment_id', '')
        if payment_id:
            lines.append(f"- :receipt: Payment: {payment_id}")
        lines.append("")
        lines.append("```" + str(record.getMessage()) + "```")
        return "\n".join(lines)

    def emit(self, record):
        if not self.enabled:
            return
        try:
            requests.post(self.webhook, json={"text": self.build_text(record)}, timeout=2)
        except requests.RequestException as exc:
            sys.stderr.write(f"slack_alert_failed | error={exc}\n")


slack_handler = SlackErrorHandler()
