from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ChatType, ParseMode
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from .config import FLAG_FIELDS, RANGE_FIELDS, FilterConfig
from .metrics import read_counters
from .types import AppContext, TokenRecord
from .utils import (
    escape_html,
    format_number,
    format_percent,
    format_sol_price,
    format_supply,
    format_ts,
    format_usd,
    parse_bool,
    short_address,
    to_float,
)

INVALID_RECORD_TEXT = "Error formatting token message: invalid token data"

HELP_TEXT = (
    "/start - what this bot does\n"
    "/status - tracking status and counters\n"
    "/filters - current filters\n"
    "/setfilter <field> <min> <max> - change a range filter (admin only)\n"
    "/setfilter <flag> <true|false> - change an authority filter (admin only)\n"
    "/help - this help"
)

WELCOME_TEXT = (
    "👋 <b>Welcome to Pump Token Tracker!</b>\n\n"
    "This bot watches pump.fun for newly minted tokens on Solana, checks each one "
    "against the configured filters and posts an alert when a token qualifies.\n\n"
    "Use /help to see available commands."
)

FILTER_LABELS = {
    "liquidity": "Liquidity (USD)",
    "pool_supply": "Pool supply (%)",
    "dev_holding": "Dev holding (%)",
    "launch_price": "Launch price (SOL)",
    "mint_auth_revoked": "Mint authority revoked",
    "freeze_auth_revoked": "Freeze authority revoked",
}


def get_app_ctx(context: ContextTypes.DEFAULT_TYPE) -> Optional[AppContext]:
    return context.application.bot_data.get("app_ctx")


def token_links(address: str) -> Dict[str, str]:
    return {
        "DexScreener": f"https://dexscreener.com/solana/{address}",
        "Solscan": f"https://solscan.io/token/{address}",
        "Rugcheck": f"https://rugcheck.xyz/tokens/{address}",
        "Birdeye": f"https://birdeye.so/token/{address}?chain=solana",
    }


def build_alert_keyboard(address: str) -> InlineKeyboardMarkup:
    links = token_links(address)
    buttons = [
        [
            InlineKeyboardButton("🔍 View on Rugcheck", url=links["Rugcheck"]),
            InlineKeyboardButton("📊 View Chart", url=links["Birdeye"]),
        ],
        [
            InlineKeyboardButton("🔄 Refresh Data", callback_data=f"refresh:{address}"),
            InlineKeyboardButton("📱 Share", callback_data=f"share:{address}"),
        ],
    ]
    return InlineKeyboardMarkup(buttons)


def _authority_label(revoked: bool) -> str:
    return "✅ Revoked" if revoked else "❌ Not Revoked"


def format_top_holders(top_holders: Sequence[Tuple[str, float]]) -> str:
    if not top_holders:
        return "No data available"
    return "\n".join(
        f"{index}. <code>{escape_html(short_address(owner))}</code>: {percent:.2f}%"
        for index, (owner, percent) in enumerate(top_holders, start=1)
    )


def _display_name(record: TokenRecord) -> str:
    name = escape_html(record.name or "Unknown")
    if record.symbol:
        return f"{name} ({escape_html(record.symbol)})"
    return name


def format_alert_message(record: Optional[TokenRecord]) -> str:
    if record is None or not record.address:
        return INVALID_RECORD_TEXT

    address = escape_html(record.address)
    lines = [
        "🌟 <b>New Token Alert</b> 🌟",
        f"📛 <b>Token Name</b>: {_display_name(record)}",
        f"📍 <b>Token Address</b>: <code>{address}</code>",
        f"💰 <b>Market Cap</b>: {format_usd(record.market_cap)}",
        f"💧 <b>Liquidity</b>: {format_usd(record.liquidity)}",
        f"👨‍💻 <b>Dev Holding</b>: {format_percent(record.dev_holding)}",
        f"🏊 <b>Pool Supply</b>: {format_percent(record.pool_supply)}",
        f"🚀 <b>Launch Price</b>: {format_sol_price(record.price)}",
        f"🪙 <b>Total Supply</b>: {format_supply(record.supply)}",
        f"🔒 <b>Mint Authority</b>: {_authority_label(record.mint_auth_revoked)}",
        f"🧊 <b>Freeze Authority</b>: {_authority_label(record.freeze_auth_revoked)}",
        f"👥 <b>Top 10 Holders</b>:\n{format_top_holders(record.top_holders)}",
    ]
    if record.degraded:
        lines.append(f"⚠️ Partial data: {', '.join(record.degraded)}")
    links = " | ".join(
        f"<a href=\"{url}\">{label}</a>" for label, url in token_links(record.address).items()
    )
    lines.append(links)
    return "\n".join(lines)


def format_rejection_message(record: TokenRecord, reasons: Sequence[str]) -> str:
    lines = [
        f"ℹ️ Token <code>{escape_html(record.address)}</code> "
        f"({_display_name(record)}) did not pass filters:"
    ]
    lines.extend(f"• {escape_html(reason)}" for reason in reasons)
    return "\n".join(lines)


def format_top_tokens_header(count: int) -> str:
    return f"📊 <b>Top {count} PumpFun Tokens (30min Update)</b> 📊"


def format_filters(filters: FilterConfig) -> str:
    lines = [f"Filters (v{filters.version}):"]
    for field in RANGE_FIELDS:
        bounds = getattr(filters, field)
        lines.append(
            f"{FILTER_LABELS[field]}: {format_number(bounds.min)} - {format_number(bounds.max)}"
        )
    for field in FLAG_FIELDS:
        lines.append(f"{FILTER_LABELS[field]}: {'yes' if getattr(filters, field) else 'no'}")
    return "\n".join(lines)


def format_status(
    ctx: AppContext,
    tracked_tokens: int,
    counters: Dict[str, int],
    last_poll_at: int,
) -> str:
    lines = [
        "📊 <b>Bot Status</b>",
        f"Tracking {tracked_tokens} tokens",
        f"Sources: {', '.join(ctx.config.sources)}",
        f"Dry run: {'on' if ctx.config.dry_run else 'off'}",
        f"Bypass filters: {'on' if ctx.config.bypass_filters else 'off'}",
        f"Last poll: {format_ts(last_poll_at, ctx.config.display_timezone)}",
        (
            f"Counts: events {counters.get('events_received', 0)}, "
            f"rate_limited {counters.get('events_rate_limited', 0)}, "
            f"evaluated {counters.get('tokens_evaluated', 0)}, "
            f"alerts {counters.get('alerts_sent', 0)}, "
            f"rejections {counters.get('rejections_sent', 0)}"
        ),
        escape_html(format_filters(ctx.filter_store.current)),
    ]
    return "\n".join(lines)


def parse_setfilter_args(args: List[str]) -> Dict[str, Any]:
    """Turn ``/setfilter`` arguments into a change description, raising ValueError on bad input."""
    if not args:
        raise ValueError("usage: /setfilter <field> <min> <max> | /setfilter <flag> <true|false>")
    field = args[0].strip().lower()
    if field in RANGE_FIELDS:
        if len(args) != 3:
            raise ValueError(f"usage: /setfilter {field} <min> <max>")
        min_value = to_float(args[1])
        max_value = to_float(args[2])
        if min_value is None or max_value is None:
            raise ValueError("min and max must be numbers")
        return {"field": field, "min": min_value, "max": max_value}
    if field in FLAG_FIELDS:
        if len(args) != 2:
            raise ValueError(f"usage: /setfilter {field} <true|false>")
        value = args[1].strip().lower()
        if value not in ("1", "true", "yes", "y", "on", "0", "false", "no", "n", "off"):
            raise ValueError("expected true or false")
        return {"field": field, "expected": parse_bool(value)}
    raise ValueError(f"unknown filter: {field}")


def is_user_admin(
    user_id: int, chat_type: str, admin_user_ids: set[int], chat_admin_ids: Optional[set[int]]
) -> bool:
    if user_id in admin_user_ids:
        return True
    if chat_type == ChatType.PRIVATE:
        return False
    if chat_admin_ids is None:
        return False
    return user_id in chat_admin_ids


async def is_admin(update: Update, context: ContextTypes.DEFAULT_TYPE, ctx: AppContext) -> bool:
    user = update.effective_user
    if user is None:
        return False
    if user.id in ctx.config.admin_user_ids:
        return True
    chat = update.effective_chat
    if chat is None or chat.type == ChatType.PRIVATE:
        return False
    try:
        admins = await context.bot.get_chat_administrators(chat.id)
    except Exception:
        ctx.logger.exception("chat_admins_lookup_failed", extra={"chat_id": chat.id})
        return False
    admin_ids = {admin.user.id for admin in admins}
    return is_user_admin(user.id, chat.type, ctx.config.admin_user_ids, admin_ids)


async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.effective_message.reply_text(WELCOME_TEXT, parse_mode=ParseMode.HTML)


async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.effective_message.reply_text(HELP_TEXT)


async def cmd_filters(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ctx = get_app_ctx(context)
    if ctx is None:
        await update.effective_message.reply_text("Bot is starting, try again in a moment.")
        return
    await update.effective_message.reply_text(format_filters(ctx.filter_store.current))


async def cmd_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ctx = get_app_ctx(context)
    if ctx is None:
        await update.effective_message.reply_text("Bot is starting, try again in a moment.")
        return
    tracked = await ctx.db.count_tokens()
    counters = await read_counters(ctx.db)
    last_poll_at = await ctx.db.get_state_int("last_poll_at", 0)
    await update.effective_message.reply_text(
        format_status(ctx, tracked, counters, last_poll_at),
        parse_mode=ParseMode.HTML,
    )


async def cmd_setfilter(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    ctx = get_app_ctx(context)
    if ctx is None:
        await update.effective_message.reply_text("Bot is starting, try again in a moment.")
        return
    if not await is_admin(update, context, ctx):
        await update.effective_message.reply_text("Admin only.")
        return
    try:
        change = parse_setfilter_args(list(context.args or []))
        if "expected" in change:
            filters = ctx.filter_store.set_flag(change["field"], change["expected"])
        else:
            filters = ctx.filter_store.set_range(change["field"], change["min"], change["max"])
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return
    ctx.logger.info(
        "filters_updated",
        extra={"field": change["field"], "version": filters.version, "user_id": update.effective_user.id},
    )
    await update.effective_message.reply_text(format_filters(filters))


async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None:
        return

    ctx = get_app_ctx(context)
    if ctx is None or ctx.pipeline is None:
        await query.answer("Bot is starting, try again in a moment.")
        return

    data = query.data or ""
    if data.startswith("share:"):
        address = data.split(":", 1)[1]
        await query.answer(
            f"Share this token: https://solscan.io/token/{address}", show_alert=True
        )
        return

    if data.startswith("refresh:"):
        address = data.split(":", 1)[1]
        cached = await ctx.db.get_token(address)
        if cached is None:
            await query.answer("Token data not found!")
            return
        await query.answer("Refreshing...")
        record, result = await ctx.pipeline.refresh(address)
        verdict = "✅ Passes filters" if result.passed else "❌ Fails filters"
        await query.message.reply_text(
            f"{format_alert_message(record)}\n{verdict}",
            parse_mode=ParseMode.HTML,
            disable_web_page_preview=True,
            reply_markup=build_alert_keyboard(address),
        )
        return

    await query.answer()


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    ctx = context.application.bot_data.get("app_ctx")
    if ctx:
        ctx.logger.error("handler_error", exc_info=context.error)


def register_handlers(application: Application) -> None:
    application.add_handler(CommandHandler("start", cmd_start))
    application.add_handler(CommandHandler("help", cmd_help))
    application.add_handler(CommandHandler("status", cmd_status))
    application.add_handler(CommandHandler("filters", cmd_filters))
    application.add_handler(CommandHandler("setfilter", cmd_setfilter))

    application.add_handler(CallbackQueryHandler(on_callback))

    application.add_error_handler(on_error)
