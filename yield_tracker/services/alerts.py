from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Sequence

from yield_tracker.clients.telegram import TelegramClient, TelegramError
from yield_tracker.models import AlertNotification, TelegramUser, YieldAlert, YieldRecord
from yield_tracker.protocols import same_protocol
from yield_tracker.services.aggregator import Aggregator
from yield_tracker.tokens import is_supported

logger = logging.getLogger(__name__)

MAX_ALERT_APY = 100.0


class AlertError(ValueError):
    pass


class AlertBook:
    """Users and their APY alerts, owned by whoever constructs it."""

    def __init__(self) -> None:
        self._users: Dict[int, TelegramUser] = {}
        self._alerts: Dict[str, YieldAlert] = {}

    def register_user(self, user_id: int, first_name: str = "", username: str | None = None, last_name: str | None = None) -> TelegramUser:
        user = self._users.get(user_id)
        if user is None:
            user = TelegramUser(id=user_id, username=username, first_name=first_name, last_name=last_name)
            self._users[user_id] = user
        return user

    def get_user(self, user_id: int) -> Optional[TelegramUser]:
        return self._users.get(user_id)

    def create_alert(self, user_id: int, token: str, min_apy: float, protocol: str | None = None) -> YieldAlert:
        if not is_supported(token):
            raise AlertError(f"Unsupported token: {token}")
        if not (0 < min_apy <= MAX_ALERT_APY):
            raise AlertError(f"Minimum APY must be between 0 and {MAX_ALERT_APY:g}")
        user = self.register_user(user_id)
        alert = YieldAlert(
            id=f"{user_id}_{token}_{time.time_ns()}",
            user_id=user_id,
            token=token,
            min_apy=min_apy,
            protocol=protocol,
        )
        self._alerts[alert.id] = alert
        user.alerts.append(alert)
        logger.info(f"Alert {alert.id} created: {token} >= {min_apy}%")
        return alert

    def remove_alert(self, user_id: int, alert_id: str) -> bool:
        alert = self._alerts.get(alert_id)
        if alert is None or alert.user_id != user_id:
            return False
        del self._alerts[alert_id]
        user = self._users.get(user_id)
        if user is not None:
            user.alerts = [a for a in user.alerts if a.id != alert_id]
        return True

    def alerts_for(self, user_id: int) -> List[YieldAlert]:
        user = self._users.get(user_id)
        return list(user.alerts) if user else []

    def active_alerts(self) -> List[YieldAlert]:
        return [a for a in self._alerts.values() if a.active]


def evaluate_alerts(
    alerts: Sequence[YieldAlert],
    yields: Sequence[YieldRecord],
    favored_protocol: str,
) -> List[AlertNotification]:
    notifications: List[AlertNotification] = []
    for alert in alerts:
        if not alert.active:
            continue
        relevant = [y for y in yields if y.token == alert.token]
        if alert.protocol:
            relevant = [y for y in relevant if same_protocol(y.protocol, alert.protocol)]
        if not relevant:
            continue
        best = max(relevant, key=lambda y: y.apy)
        if best.apy < alert.min_apy:
            continue
        favored = next((y for y in relevant if same_protocol(y.protocol, favored_protocol)), None)
        notifications.append(
            AlertNotification(
                alert=alert,
                best_protocol=best.protocol,
                best_apy=best.apy,
                favored_protocol=favored_protocol,
                favored_apy=favored.apy if favored else None,
            )
        )
    return notifications


def format_notification(n: AlertNotification) -> str:
    message = "🚨 *Yield Alert Triggered!*\n\n"
    message += f"{n.alert.token.value} has reached {n.best_apy:.2f}% on {n.best_protocol}!\n"
    if n.favored_apy is not None:
        marker = "🟢" if n.favored_meets_threshold else "🟡"
        message += f"\n{marker} *{n.favored_protocol}*: {n.favored_apy:.2f}%"
    return message


class AlertNotifier:
    def __init__(self, book: AlertBook, aggregator: Aggregator, telegram: TelegramClient, favored_protocol: str):
        self.book = book
        self.aggregator = aggregator
        self.telegram = telegram
        self.favored_protocol = favored_protocol

    async def check_alerts(self) -> int:
        alerts = self.book.active_alerts()
        if not alerts:
            return 0
        yields = await self.aggregator.get_all_yields()
        sent = 0
        for n in evaluate_alerts(alerts, yields, self.favored_protocol):
            try:
                await self.telegram.send_message(n.alert.user_id, format_notification(n))
                sent += 1
            except TelegramError as e:
                logger.warning(f"Failed to deliver alert {n.alert.id}: {e}")
        logger.info(f"Alert check: {len(alerts)} active, {sent} notifications sent")
        return sent
