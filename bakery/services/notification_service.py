# bakery/services/notification_service.py
"""Customer SMS and admin Telegram notifications.

Everything here is best effort: dispatches run as background tasks and a
failing channel is logged, never raised to the code that changed the order.
"""
import asyncio
import logging
from typing import Iterable, Optional, Set
import aiohttp
from telegram import Bot
from telegram.error import TelegramError
from ..config import Config
from ..models.order import Order, OrderStatus
from ..utils.formatters import format_phone
from ..utils.messages import Messages

logger = logging.getLogger(__name__)

# Statuses the customer hears about by SMS
CUSTOMER_NOTIFIED_STATUSES = frozenset({
    OrderStatus.CONFIRMED, OrderStatus.READY, OrderStatus.CANCELLED
})


class SmsDeliveryError(Exception):
    pass


class SmsSender:
    """Brevo transactional SMS"""

    API_URL = "https://api.brevo.com/v3/transactionalSMS/sms"

    def __init__(self, api_key: str, sender: str, timeout: float = 10, session_factory=None):
        self.api_key = api_key
        self.sender = sender
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session_factory = session_factory or aiohttp.ClientSession

    async def send(self, phone: str, content: str):
        recipient = format_phone(phone)
        async with self.session_factory(timeout=self.timeout) as session:
            async with session.post(self.API_URL, headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "api-key": self.api_key,
            }, json={
                "sender": self.sender,
                "recipient": recipient,
                "content": content,
                "type": "transactional",
            }) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise SmsDeliveryError(f"Brevo answered {response.status}: {detail}")
        logger.info(f"SMS sent to {recipient}")


class NotificationService:
    def __init__(self, bot: Optional[Bot] = None, sms: Optional[SmsSender] = None,
                 admin_chat_ids: Iterable[int] = ()):
        self.bot = bot
        self.sms = sms
        self.admin_chat_ids = list(admin_chat_ids)
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, bot: Optional[Bot] = None) -> "NotificationService":
        sms = SmsSender(Config.BREVO_API_KEY, Config.SMS_SENDER) if Config.BREVO_API_KEY else None
        return cls(bot=bot, sms=sms, admin_chat_ids=Config.ADMIN_CHAT_IDS)

    def order_created(self, order: Order):
        if self.sms:
            self._dispatch(
                self.sms.send(order.customer_phone, Messages.order_created_sms(order)),
                f"order-created SMS for {order.order_number}",
            )
        self._notify_admins(Messages.new_order_admin(order), order.order_number)

    def status_changed(self, order: Order, previous: OrderStatus):
        if self.sms and order.status in CUSTOMER_NOTIFIED_STATUSES:
            self._dispatch(
                self.sms.send(order.customer_phone, Messages.status_changed_sms(order)),
                f"status SMS for {order.order_number}",
            )
        self._notify_admins(Messages.status_changed_admin(order, previous), order.order_number)

    def _notify_admins(self, text: str, order_number: str):
        if not self.bot:
            return
        for chat_id in self.admin_chat_ids:
            self._dispatch(
                self.bot.send_message(chat_id=chat_id, text=text),
                f"admin message for {order_number} to {chat_id}",
            )

    def _dispatch(self, coro, description: str):
        task = asyncio.create_task(self._run(coro, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run(coro, description: str):
        try:
            await coro
        except (SmsDeliveryError, TelegramError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Notification failed ({description}): {e}")
        except Exception as e:
            logger.error(f"Unexpected notification error ({description}): {e}", exc_info=True)

    async def drain(self):
        """Wait for every notification still in flight"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
