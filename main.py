# main.py
import asyncio
import logging
import uvicorn
from telegram import Bot
from bakery.app import BakeryShopApp
from bakery.config import Config, setup_logging
from bakery.database.database import Database
from bakery.services.notification_service import NotificationService
from bakery.services.payment_providers import get_payment_provider

async def main():
    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)
    Config.validate()

    db = Database()
    await db.connect()

    bot = Bot(Config.TELEGRAM_TOKEN) if Config.TELEGRAM_TOKEN else None
    notifier = NotificationService.from_config(bot=bot)
    shop = BakeryShopApp(db, provider=get_payment_provider(), notifier=notifier)

    server = uvicorn.Server(uvicorn.Config(
        shop.application,
        host=Config.HOST,
        port=Config.PORT,
        log_config=None,
    ))

    try:
        logger.info(f"Starting {Config.STORE_NAME} on {Config.HOST}:{Config.PORT}")
        await server.serve()
    except Exception as e:
        logger.error(f"Error running server: {e}", exc_info=True)
        raise
    finally:
        await shop.shutdown()
        await db.close()

if __name__ == "__main__":
    asyncio.run(main())
