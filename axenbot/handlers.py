"""Telegram command and reply keyboard handlers used by the bot."""

from typing import Optional

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    Update,
    WebAppInfo,
)
from telegram.constants import ParseMode
from telegram.ext import ContextTypes

from . import api, charts, config
from .errors import TransportFailure, ValidationFailure
from .notifier import Notifier
from .subscriptions import SubscriberState, SubscriptionEngine
from .vault import VaultClient, parse_amount, to_base_units

DEPOSIT_BUTTON = "\U0001f4b0 Deposit"
WITHDRAW_BUTTON = "\U0001f3e6 Withdraw"
PRICE_BUTTON = "\U0001f4c8 See Price"
SUBSCRIBE_BUTTON = "\U0001f9e0 Subscribe to Strategy"

WELCOME_EMOJI = "\U0001f44b"
INFO_EMOJI = "ℹ️"
ERROR_EMOJI = "❌"
LINK_EMOJI = "\U0001f517"

COMMANDS: list[tuple[str, str]] = [
    ("start", "Show menu"),
    ("price", "Current price and trend chart"),
    ("subscribe", "Receive strategy alerts"),
    ("unsubscribe", "Pause strategy alerts"),
    ("status", "Strategy alert progress"),
    ("deposit", "Deposit into the vault"),
    ("withdraw", "Withdraw from the vault"),
    ("balance", "Vault balance"),
    ("help", "Show help"),
]


def get_keyboard() -> ReplyKeyboardMarkup:
    """Return the permanent reply keyboard shown to users."""
    keyboard = [
        [KeyboardButton(DEPOSIT_BUTTON), KeyboardButton(WITHDRAW_BUTTON)],
        [KeyboardButton(PRICE_BUTTON), KeyboardButton(SUBSCRIBE_BUTTON)],
    ]
    return ReplyKeyboardMarkup(keyboard, resize_keyboard=True, is_persistent=True)


def web_app_keyboard(label: str, url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(label, web_app=WebAppInfo(url=url))]]
    )


def _engine(context: ContextTypes.DEFAULT_TYPE) -> SubscriptionEngine:
    return context.bot_data["engine"]


def _notifier(context: ContextTypes.DEFAULT_TYPE) -> Notifier:
    return context.bot_data["notifier"]


def _vault(context: ContextTypes.DEFAULT_TYPE) -> Optional[VaultClient]:
    return context.bot_data.get("vault")


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a welcome message and show the main keyboard."""
    user = update.effective_user
    first_name = (user.first_name if user else None) or "there"
    config.logger.info("start chat=%s", update.effective_chat.id)
    await update.message.reply_text(
        f"{WELCOME_EMOJI} Hello {first_name}!\n\nWelcome to *{config.BOT_NAME}*! "
        "I'm here to make money for you! Ready to go? \U0001f680\n\n"
        "Please choose an option below:",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=get_keyboard(),
    )


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Display available commands."""
    lines = [f"/{name} - {desc}" for name, desc in COMMANDS]
    lines.append(
        "Strategy alerts arrive every "
        f"{config.format_interval(config.STRATEGY_INTERVAL)}"
    )
    await update.message.reply_text(
        f"{INFO_EMOJI} Commands\n" + "\n".join(lines), reply_markup=get_keyboard()
    )


async def send_price(notifier: Notifier, chat_id: int) -> bool:
    """Send a simulated trend chart and the current price to ``chat_id``."""
    quote = await api.get_quote(config.PRICE_ASSET, config.VS_CURRENCY, user=chat_id)
    if not quote.success:
        await notifier.send_text(
            chat_id,
            f"{ERROR_EMOJI} Unable to fetch {config.PRICE_SYMBOL} price at the moment.",
            reply_markup=get_keyboard(),
        )
        return False

    labels, values = charts.synthesize(quote.price, config.CHART_POINTS)
    if config.CHART_RENDERER == "local":
        photo = charts.render_chart_image(labels, values)
    else:
        photo = charts.render_chart_url(labels, values)
    sent = await notifier.send_photo(
        chat_id, photo, caption="\U0001f4c8 Price trend of Axen Vault"
    )
    if not sent:
        config.logger.warning("price chart for chat %s was not delivered", chat_id)
    await notifier.send_text(
        chat_id,
        f"\U0001f4b5 *Current {config.PRICE_SYMBOL} Price*: "
        f"*${quote.price:.2f} {config.VS_CURRENCY.upper()}*",
        reply_markup=get_keyboard(),
    )
    return True


async def price_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send the price chart for the configured asset."""
    await send_price(_notifier(context), update.effective_chat.id)


async def subscribe_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Subscribe the chat to strategy notifications."""
    await _engine(context).subscribe(update.effective_chat.id)


async def unsubscribe_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Pause strategy notifications for the chat."""
    await _engine(context).unsubscribe(update.effective_chat.id)


async def status_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show how far the chat has progressed through the strategy catalog."""
    engine = _engine(context)
    subscriber = await engine.status(update.effective_chat.id)
    if subscriber is None:
        text = f"{INFO_EMOJI} Not subscribed. Use /subscribe to start."
    else:
        total = len(engine.catalog)
        label = {
            SubscriberState.ACTIVE: "active",
            SubscriberState.STOPPED: "paused",
            SubscriberState.EXHAUSTED: "complete",
        }[subscriber.state]
        text = (
            f"{INFO_EMOJI} Strategies received: {subscriber.next_index}/{total} "
            f"({label})"
        )
    await update.message.reply_text(text, reply_markup=get_keyboard())


async def _amount_link(
    update: Update, context: ContextTypes.DEFAULT_TYPE, action: str, base_url: str
) -> None:
    if not context.args:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Usage: /{action} <amount>", reply_markup=get_keyboard()
        )
        return
    try:
        to_base_units(context.args[0], config.VAULT_DECIMALS)
        amount = f"{parse_amount(context.args[0]):f}"
    except ValidationFailure as exc:
        await update.message.reply_text(
            f"{ERROR_EMOJI} {exc}", reply_markup=get_keyboard()
        )
        return
    url = f"{base_url}?amount={amount}"
    config.logger.info(
        "%s link chat=%s amount=%s", action, update.effective_chat.id, amount
    )
    await update.message.reply_text(
        f"{LINK_EMOJI} To {action} {amount} {config.PRICE_SYMBOL}, please visit the "
        f"following page: {url}",
        reply_markup=web_app_keyboard(f"Open {action} page", url),
    )


async def deposit_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Reply with the deposit page link for ``/deposit <amount>``."""
    await _amount_link(update, context, "deposit", config.DEPOSIT_URL)


async def withdraw_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Reply with the withdraw page link for ``/withdraw <amount>``."""
    await _amount_link(update, context, "withdraw", config.WITHDRAW_URL)


async def balance_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Report the vault contract balance."""
    vault = _vault(context)
    if vault is None or not vault.configured:
        await update.message.reply_text(
            f"{INFO_EMOJI} The vault is not configured.", reply_markup=get_keyboard()
        )
        return
    try:
        balance = await vault.get_balance()
    except TransportFailure:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Error fetching balance. Please try again later.",
            reply_markup=get_keyboard(),
        )
        return
    except ValidationFailure as exc:
        await update.message.reply_text(
            f"{ERROR_EMOJI} {exc}", reply_markup=get_keyboard()
        )
        return
    await update.message.reply_text(
        f"\U0001f3e6 Vault balance is {balance:f} {config.PRICE_SYMBOL}.",
        reply_markup=get_keyboard(),
    )


async def menu(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle reply keyboard button presses."""
    if not update.message or not update.message.text:
        return
    text = update.message.text.strip()
    if text == DEPOSIT_BUTTON:
        await update.message.reply_text(
            f"{LINK_EMOJI} *Click below to deposit into Axen Vault*:",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=web_app_keyboard("\U0001f680 Deposit Now", config.DEPOSIT_URL),
        )
    elif text == WITHDRAW_BUTTON:
        await update.message.reply_text(
            f"{LINK_EMOJI} *Click below to withdraw from Axen Vault*:",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=web_app_keyboard(
                "\U0001f3e6 Withdraw Now", config.WITHDRAW_URL
            ),
        )
    elif text == PRICE_BUTTON:
        await price_cmd(update, context)
    elif text == SUBSCRIBE_BUTTON:
        await subscribe_cmd(update, context)
