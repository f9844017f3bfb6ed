"""
Fraud Detection Engine - Alerting.

============================================================
PURPOSE
============================================================
Turns fraud notifications into operator alerts.

Provides:
- Telegram notifications on blacklisting and high risk
- Alert formatting with context
- Rate limiting per actor to prevent spam

============================================================
ALERT PHILOSOPHY
============================================================
- Alerts are fire-and-forget; a failed send never touches
  engine state
- CRITICAL alerts (blacklisting) bypass the rate limit
- Notifications are queued synchronously from the event log
  and sent later with ``flush``

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from core.events import EventLog, Notification

from .config import AlertingConfig


logger = logging.getLogger(__name__)


# ============================================================
# ALERT MESSAGE DATACLASS
# ============================================================


@dataclass(frozen=True)
class FraudAlert:
    """Structured alert for a fraud event."""

    alert_type: str
    severity: str
    title: str
    message: str
    timestamp: datetime
    actor: str
    risk_score: int = 0
    product_id: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_telegram_message(self, include_details: bool = True) -> str:
        emoji = "🔴" if self.severity == "CRITICAL" else "🟠" if self.severity == "HIGH" else "🟡"

        lines = [
            f"{emoji} *FRAUD ALERT*",
            "",
            f"*{self.title}*",
            f"*Actor:* {self.actor}",
            f"*Risk:* {self.risk_score}",
            f"*Time:* {self.timestamp.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]
        if self.product_id is not None:
            lines.append(f"*Product:* {self.product_id}")

        if include_details:
            lines.append("")
            lines.append(f"*Reason:* {self.message}")
            for issue in self.context.get("issues", []):
                lines.append(f"  • {issue}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_type": self.alert_type,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "risk_score": self.risk_score,
            "product_id": self.product_id,
            "context": self.context,
        }


# ============================================================
# ALERT SENDER PROTOCOL
# ============================================================


class AlertSender(Protocol):
    """Destination for fraud alerts."""

    async def send(self, alert: FraudAlert) -> bool:
        ...


# ============================================================
# TELEGRAM ALERT SENDER
# ============================================================


class TelegramAlertSender:
    """
    Send fraud alerts via the Telegram Bot API.

    Falls back to TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID from
    the environment when no credentials are passed.
    """

    BASE_URL = "https://api.telegram.org/bot"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        include_details: bool = True,
        timeout_seconds: float = 10.0,
    ):
        self._bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN", "")
        self._chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID", "")
        self._include_details = include_details
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

        if not self.enabled:
            logger.warning(
                "TelegramAlertSender NOT configured - check TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID"
            )

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def send(self, alert: FraudAlert) -> bool:
        if not self.enabled:
            return False

        payload = {
            "chat_id": self._chat_id,
            "text": alert.to_telegram_message(include_details=self._include_details),
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
        url = f"{self.BASE_URL}{self._bot_token}/sendMessage"

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                if response.status == 200:
                    return True
                body = await response.text()
                logger.error(f"Telegram API error: {response.status} - {body}")
                return False
        except aiohttp.ClientError as e:
            logger.error(f"Error sending Telegram alert: {e}")
            return False


# ============================================================
# CONSOLE ALERT SENDER (FOR TESTING)
# ============================================================


class ConsoleAlertSender:
    """Print alerts to console (for development/testing)."""

    async def send(self, alert: FraudAlert) -> bool:
        print("=" * 50)
        print("FRAUD ALERT")
        print("=" * 50)
        print(f"Severity: {alert.severity}")
        print(f"Actor: {alert.actor}")
        print(f"Risk: {alert.risk_score}")
        print(f"Message: {alert.message}")
        print("=" * 50)
        return True


# ============================================================
# RATE LIMITER
# ============================================================


class AlertRateLimiter:
    """
    Enforces a minimum interval between alerts per actor.

    CRITICAL alerts are always allowed.
    """

    def __init__(self, min_interval_seconds: float = 300.0):
        self._min_interval = timedelta(seconds=min_interval_seconds)
        self._last_alerts: Dict[str, datetime] = {}

    def should_send(self, key: str, severity: str, now: Optional[datetime] = None) -> bool:
        if severity == "CRITICAL":
            return True
        last_alert = self._last_alerts.get(key)
        if last_alert is None:
            return True
        now = now or datetime.now(timezone.utc)
        return (now - last_alert) >= self._min_interval

    def record_sent(self, key: str, now: Optional[datetime] = None) -> None:
        self._last_alerts[key] = now or datetime.now(timezone.utc)

    def reset(self) -> None:
        self._last_alerts.clear()


# ============================================================
# FRAUD ALERTING SERVICE
# ============================================================


class FraudAlertingService:
    """
    Builds alerts from fraud notifications and sends them.

    ============================================================
    ALERTED NOTIFICATIONS
    ============================================================
    - ActorBlacklisted: CRITICAL
    - ComprehensiveAnalysisCompleted at or above
      alert_risk_score: HIGH
    - PriceAnomalyDetected (only with alert_on_anomaly): MEDIUM

    ============================================================
    """

    def __init__(
        self,
        config: Optional[AlertingConfig] = None,
        senders: Optional[List[AlertSender]] = None,
    ):
        self._config = config or AlertingConfig()
        self._senders: List[AlertSender] = list(senders or [])
        self._rate_limiter = AlertRateLimiter(
            min_interval_seconds=self._config.min_seconds_between_alerts
        )
        self._pending: List[Notification] = []

    def add_sender(self, sender: AlertSender) -> None:
        self._senders.append(sender)

    def attach(self, events: EventLog) -> None:
        """Queue every notification emitted on ``events``."""
        events.subscribe(self.enqueue)

    def enqueue(self, notification: Notification) -> None:
        if self.build_alert(notification) is not None:
            self._pending.append(notification)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def build_alert(self, notification: Notification) -> Optional[FraudAlert]:
        """Alert for ``notification``, or None when it is not alert-worthy."""
        payload = notification.payload

        if notification.name == "ActorBlacklisted" and self._config.alert_on_blacklist:
            return FraudAlert(
                alert_type="BLACKLIST",
                severity="CRITICAL",
                title="Actor blacklisted",
                message=payload.get("reason", ""),
                timestamp=notification.emitted_at,
                actor=payload["actor"],
                risk_score=payload.get("risk_score", 0),
                context={"violation_count": payload.get("violation_count", 0)},
            )

        if notification.name == "ComprehensiveAnalysisCompleted":
            score = payload.get("risk_score", 0)
            if score < self._config.alert_risk_score:
                return None
            return FraudAlert(
                alert_type="HIGH_RISK",
                severity="HIGH",
                title=f"High risk score on product {payload['product_id']}",
                message=f"Aggregate risk score {score}",
                timestamp=notification.emitted_at,
                actor=payload["owner"],
                risk_score=score,
                product_id=payload["product_id"],
                context={"issues": list(payload.get("issues", []))},
            )

        if notification.name == "PriceAnomalyDetected" and self._config.alert_on_anomaly:
            return FraudAlert(
                alert_type="PRICE_ANOMALY",
                severity="MEDIUM",
                title=f"Price anomaly #{payload['anomaly_id']}",
                message=(
                    f"{payload['anomaly_type']} price {payload['price']} "
                    f"deviates {payload['deviation_bp']}bp"
                ),
                timestamp=notification.emitted_at,
                actor=payload["actor"],
                product_id=payload["product_id"],
                context={"confidence_score": payload.get("confidence_score", 0)},
            )

        return None

    async def process_event(self, notification: Notification) -> Optional[FraudAlert]:
        """
        Send an alert for one notification if warranted.

        Returns:
            The alert if at least one sender delivered it
        """
        alert = self.build_alert(notification)
        if alert is None:
            return None

        key = alert.actor
        if not self._rate_limiter.should_send(key, alert.severity, alert.timestamp):
            logger.debug(f"Alert for {key} rate limited")
            return None

        sent = False
        for sender in self._senders:
            try:
                if await sender.send(alert):
                    sent = True
            except Exception as e:
                logger.error(f"Alert sender {type(sender).__name__} failed: {e}")

        if sent:
            self._rate_limiter.record_sent(key, alert.timestamp)
            return alert
        return None

    async def flush(self) -> List[FraudAlert]:
        """Send every queued notification; returns the alerts delivered."""
        pending, self._pending = self._pending, []
        delivered = []
        for notification in pending:
            alert = await self.process_event(notification)
            if alert is not None:
                delivered.append(alert)
        return delivered


# ============================================================
# FACTORY FUNCTIONS
# ============================================================


def create_telegram_alerting_service(
    bot_token: Optional[str] = None,
    chat_id: Optional[str] = None,
    config: Optional[AlertingConfig] = None,
) -> FraudAlertingService:
    config = config or AlertingConfig()
    service = FraudAlertingService(config=config)
    service.add_sender(TelegramAlertSender(
        bot_token=bot_token,
        chat_id=chat_id,
        include_details=config.telegram_include_details,
        timeout_seconds=config.telegram_timeout_seconds,
    ))
    return service


def create_console_alerting_service(
    config: Optional[AlertingConfig] = None,
) -> FraudAlertingService:
    service = FraudAlertingService(config=config)
    service.add_sender(ConsoleAlertSender())
    return service
