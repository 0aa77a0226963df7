"""Main entry point for starting the Telegram bot."""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from telegram import BotCommand
from telegram.ext import ApplicationBuilder, CommandHandler, MessageHandler, filters

from . import config, handlers
from .notifier import Notifier
from .subscriptions import MemoryStore, SqliteStore, SubscriptionEngine
from .vault import VaultClient


async def build_store():
    """Return the subscriber store selected by ``SUBSCRIPTION_DB``."""
    if not config.SUBSCRIPTION_DB:
        config.logger.info("subscriber progress is kept in memory only")
        return MemoryStore()
    store = SqliteStore(config.SUBSCRIPTION_DB)
    await store.init()
    return store


async def main() -> None:
    """Run the Telegram bot until the process receives a stop signal."""
    token = config.TELEGRAM_TOKEN
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN not set")

    app = ApplicationBuilder().token(token).build()
    scheduler = AsyncIOScheduler()
    notifier = Notifier(app.bot)
    engine = SubscriptionEngine(
        notifier,
        config.STRATEGIES,
        interval=config.STRATEGY_INTERVAL,
        store=await build_store(),
        scheduler=scheduler,
        reply_markup=handlers.get_keyboard(),
    )
    app.bot_data["notifier"] = notifier
    app.bot_data["engine"] = engine
    app.bot_data["vault"] = VaultClient(config.RPC_URL, config.VAULT_ADDRESS)

    app.add_handler(CommandHandler("start", handlers.start))
    app.add_handler(CommandHandler("help", handlers.help_cmd))
    app.add_handler(CommandHandler("price", handlers.price_cmd))
    app.add_handler(CommandHandler("subscribe", handlers.subscribe_cmd))
    app.add_handler(CommandHandler("unsubscribe", handlers.unsubscribe_cmd))
    app.add_handler(CommandHandler("status", handlers.status_cmd))
    app.add_handler(CommandHandler("deposit", handlers.deposit_cmd))
    app.add_handler(CommandHandler("withdraw", handlers.withdraw_cmd))
    app.add_handler(CommandHandler("balance", handlers.balance_cmd))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handlers.menu))

    scheduler.start()
    await engine.resume()

    await app.initialize()
    await app.bot.set_my_commands(
        [BotCommand(name, desc) for name, desc in handlers.COMMANDS]
    )
    await app.start()
    await app.updater.start_polling()
    config.logger.info(f"{config.BOT_NAME} started")

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        asyncio.get_running_loop().add_signal_handler(sig, stop_event.set)

    await stop_event.wait()
    await app.updater.stop()
    await app.stop()
    await app.shutdown()
    engine.shutdown()
    scheduler.shutdown()
    config.logger.info(f"{config.BOT_NAME} stopped")
