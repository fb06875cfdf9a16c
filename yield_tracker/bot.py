"""Telegram bot: yield/opportunity commands and alert setup over webhook updates."""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from yield_tracker.clients.telegram import TelegramClient
from yield_tracker.models import Opportunity, YieldAlert, YieldRecord
from yield_tracker.protocols import PROTOCOLS, same_protocol
from yield_tracker.services.aggregator import Aggregator
from yield_tracker.services.alerts import AlertBook, AlertError
from yield_tracker.services.ranker import OpportunityRanker
from yield_tracker.tokens import SUPPORTED_SYMBOLS

logger = logging.getLogger(__name__)

ALERT_TOKEN_PREFIX = "alert_token_"
REMOVE_ALERT_PREFIX = "remove_alert_"


def format_yields_message(yields: Sequence[YieldRecord], favored_protocol: str) -> str:
    grouped: Dict[str, List[YieldRecord]] = defaultdict(list)
    for y in yields:
        grouped[y.token.value].append(y)

    message = "💰 *Current Yields Comparison*\n\n"
    for token, token_yields in grouped.items():
        message += f"*{token}:*\n"
        ranked = sorted(token_yields, key=lambda y: y.apy, reverse=True)
        favored = next((y for y in ranked if same_protocol(y.protocol, favored_protocol)), None)
        best = ranked[0]
        for i, y in enumerate(ranked):
            if y is favored:
                emoji = "🟢"
            elif y is best:
                emoji = "🥇"
            elif i == 1:
                emoji = "🥈"
            else:
                emoji = "🥉"
            message += f"{emoji} {y.protocol}: {y.apy:.2f}%\n"

        others = [y for y in ranked if y is not favored]
        if favored is not None and others:
            diff = favored.apy - others[0].apy
            if diff > 0:
                message += f"📈 *{favored_protocol} leads by {diff:.2f}%!*\n"
            else:
                message += f"📉 {favored_protocol} trails by {abs(diff):.2f}%\n"
        message += "\n"

    message += f"_Last updated: {datetime.now(timezone.utc):%H:%M:%S} UTC_"
    return message


def format_opportunities_message(opportunities: Sequence[Opportunity], favored_protocol: str) -> str:
    message = f"🎯 *Best {favored_protocol} Opportunities*\n\n"
    leading = [o for o in opportunities if o.advantage > 0]
    if not leading:
        message += f"🔍 No current opportunities where {favored_protocol} beats competition.\n\n"
        message += f"*Top {favored_protocol} Yields:*\n"
        for o in opportunities[:3]:
            message += (
                f"• {o.token.value}: {o.favored_apy:.2f}% "
                f"(vs {o.best_competitor_protocol}: {o.best_competitor_apy:.2f}%)\n"
            )
        return message

    for o in leading:
        message += f"🚀 *{o.token.value}*\n"
        message += f"{favored_protocol}: {o.favored_apy:.2f}%\n"
        message += f"{o.best_competitor_protocol}: {o.best_competitor_apy:.2f}%\n"
        message += f"💚 *+{o.advantage:.2f}% advantage* ({'⭐' * int(o.score)})\n\n"
    return message


def format_alerts_message(alerts: Sequence[YieldAlert]) -> str:
    message = "🔔 *Your Active Alerts*\n\n"
    for i, a in enumerate(alerts, start=1):
        scope = f" on {a.protocol}" if a.protocol else ""
        message += f"{i}. {a.token.value} ≥ {a.min_apy:g}%{scope}\n"
        message += f"   Created: {a.created_at:%Y-%m-%d}\n"
        message += f"   Status: {'✅ Active' if a.active else '❌ Inactive'}\n\n"
    return message


def welcome_message(favored_protocol: str) -> str:
    return (
        f"🚀 *Welcome to {favored_protocol} Yield Tracker!*\n\n"
        f"I help you find the best yields on Solana and notify you when {favored_protocol} beats the competition!\n\n"
        "*Available Commands:*\n"
        "/yields - View current yield comparison\n"
        f"/opportunities - Best {favored_protocol} opportunities right now\n"
        "/alert - Set up yield alerts\n"
        "/myalerts - Manage your alerts\n"
        "/help - Show this help message\n\n"
        f"*Supported Tokens:* {', '.join(SUPPORTED_SYMBOLS)}\n\n"
        "Get started by checking current yields with /yields"
    )


def help_message(favored_protocol: str) -> str:
    protocols = "\n".join(f"• {p.name}" for p in PROTOCOLS.values())
    return (
        f"🤖 *{favored_protocol} Yield Tracker Bot Help*\n\n"
        "*Commands:*\n"
        "/yields - Compare current yields across protocols\n"
        f"/opportunities - See where {favored_protocol} beats competition\n"
        "/alert - Set up yield notifications\n"
        "/myalerts - View and manage your alerts\n"
        "/help - Show this help\n\n"
        "*About Alerts:*\n"
        "• Get notified when yields reach your target\n"
        f"• Get notified when {favored_protocol} beats competitors\n"
        "• Alerts check every 15 minutes\n\n"
        f"*Supported Protocols:*\n{protocols}"
    )


class YieldBot:
    def __init__(
        self,
        book: AlertBook,
        aggregator: Aggregator,
        ranker: OpportunityRanker,
        telegram: TelegramClient,
        favored_protocol: str,
    ):
        self.book = book
        self.aggregator = aggregator
        self.ranker = ranker
        self.telegram = telegram
        self.favored_protocol = favored_protocol
        # user id -> token awaiting a minimum APY reply
        self._pending: Dict[int, str] = {}

    async def handle_update(self, update: Dict[str, Any]) -> None:
        if "callback_query" in update:
            await self._on_callback(update["callback_query"])
        elif "message" in update:
            await self._on_message(update["message"])
        else:
            logger.debug(f"Ignoring update {update.get('update_id')}")

    def _register(self, sender: Optional[Dict[str, Any]]) -> Optional[int]:
        if not sender:
            return None
        user = self.book.register_user(
            int(sender["id"]),
            first_name=sender.get("first_name", ""),
            username=sender.get("username"),
            last_name=sender.get("last_name"),
        )
        return user.id

    async def _on_message(self, message: Dict[str, Any]) -> None:
        user_id = self._register(message.get("from"))
        chat_id = message.get("chat", {}).get("id", user_id)
        text = (message.get("text") or "").strip()
        if user_id is None or not text:
            return

        if text.startswith("/"):
            command = text.split()[0][1:].split("@")[0].lower()
            await self._on_command(command, chat_id, user_id)
        elif user_id in self._pending:
            await self._on_alert_threshold(chat_id, user_id, text)

    async def _on_command(self, command: str, chat_id: int, user_id: int) -> None:
        if command == "start":
            await self.telegram.send_message(chat_id, welcome_message(self.favored_protocol))
        elif command == "help":
            await self.telegram.send_message(chat_id, help_message(self.favored_protocol))
        elif command == "yields":
            yields = await self.aggregator.get_all_yields()
            await self.telegram.send_message(chat_id, format_yields_message(yields, self.favored_protocol))
        elif command == "opportunities":
            opportunities = await self.ranker.get_best_opportunities()
            await self.telegram.send_message(chat_id, format_opportunities_message(opportunities, self.favored_protocol))
        elif command == "alert":
            keyboard = {
                "inline_keyboard": [[{"text": t, "callback_data": f"{ALERT_TOKEN_PREFIX}{t}"}] for t in SUPPORTED_SYMBOLS]
            }
            await self.telegram.send_message(chat_id, "Which token would you like to set an alert for?", reply_markup=keyboard)
        elif command == "myalerts":
            alerts = self.book.alerts_for(user_id)
            if not alerts:
                await self.telegram.send_message(chat_id, "You have no active alerts. Use /alert to create one!")
                return
            keyboard = {
                "inline_keyboard": [
                    [{"text": f"Remove {a.token.value} ≥ {a.min_apy:g}%", "callback_data": f"{REMOVE_ALERT_PREFIX}{a.id}"}]
                    for a in alerts
                ]
            }
            await self.telegram.send_message(chat_id, format_alerts_message(alerts), reply_markup=keyboard)
        else:
            await self.telegram.send_message(chat_id, "Unknown command. Use /help to see what I can do.")

    async def _on_alert_threshold(self, chat_id: int, user_id: int, text: str) -> None:
        token = self._pending[user_id]
        try:
            min_apy = float(text.rstrip("%"))
            alert = self.book.create_alert(user_id, token, min_apy)
        except (ValueError, AlertError):
            await self.telegram.send_message(chat_id, "Please enter a valid APY between 0 and 100.")
            return
        del self._pending[user_id]
        await self.telegram.send_message(
            chat_id,
            f"✅ *Alert Created!*\n\nToken: {token}\nMinimum APY: {alert.min_apy:g}%\n\n"
            f"You'll be notified when any protocol offers {alert.min_apy:g}% or higher for {token}.",
        )

    async def _on_callback(self, query: Dict[str, Any]) -> None:
        user_id = self._register(query.get("from"))
        data = query.get("data") or ""
        message = query.get("message") or {}
        chat_id = message.get("chat", {}).get("id", user_id)
        message_id = message.get("message_id")

        if user_id is not None and data.startswith(ALERT_TOKEN_PREFIX):
            token = data[len(ALERT_TOKEN_PREFIX):]
            if token in SUPPORTED_SYMBOLS:
                self._pending[user_id] = token
                await self.telegram.edit_message_text(
                    chat_id,
                    message_id,
                    f"Setting alert for *{token}*\n\nWhat minimum APY would you like to be notified about?\n\n"
                    'Example: Send "8.5" for 8.5% APY',
                )
        elif user_id is not None and data.startswith(REMOVE_ALERT_PREFIX):
            removed = self.book.remove_alert(user_id, data[len(REMOVE_ALERT_PREFIX):])
            text = "✅ Alert removed successfully!" if removed else "That alert no longer exists."
            await self.telegram.edit_message_text(chat_id, message_id, text)

        if query.get("id"):
            await self.telegram.answer_callback_query(query["id"])
