"""HTML wallet status page.

Rendered from the state store only; viewing the page never triggers a fetch.
"""

import html
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from wallet_watcher.api.deps import get_context
from wallet_watcher.core.context import WatcherContext
from wallet_watcher.models.wallet import WalletConfig

router = APIRouter()

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Crypto Wallet Watcher</title>
    <style>
        h1 {{ border-bottom: 1px solid #ccc; padding-bottom: 0.25em; }}
        h2 {{ display: flex; align-items: center; margin-bottom: 0.5em; }}
        h2 img {{ width: 32px; height: 32px; margin-right: 0.35em; }}
        .container {{ width: 800px; margin: 0 auto; }}
        .row {{ margin: 1.5em 0; }}
        .stale {{ color: #b00020; font-weight: bold; }}
        .failing {{ color: #b36b00; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Wallet Status</h1>
        {rows}
    </div>
</body>
</html>
"""

ROW_TEMPLATE = """
        <div class="row">
            <h2><img src="{logo}" alt="{name}">{name}</h2>
            Address: <a href="{explorer_url}">{address}</a><br>
            Balance: {balance}<br>
            Last Active On: {last_active}<br>
            Time Since Last Activity: {elapsed}{notes}
        </div>"""


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def format_elapsed(seconds: float) -> str:
    """Render a duration like ``2 days, 3 hours, 1 minute, 5 seconds``.

    Leading zero units are dropped; once a unit is shown every smaller unit
    follows it.
    """
    total = max(0, int(seconds))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)

    parts = [(days, "day"), (hours, "hour"), (minutes, "minute"), (secs, "second")]
    while len(parts) > 1 and parts[0][0] == 0:
        parts.pop(0)
    return ", ".join(_plural(n, unit) for n, unit in parts)


def format_timestamp(epoch: Optional[int]) -> str:
    if epoch is None:
        return "?"
    try:
        return datetime.fromtimestamp(epoch, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "?"


def _format_balance(balance: Optional[float], ticker: str) -> str:
    if balance is None:
        return "?"
    return f"{balance:g} {ticker}"


def render_status_page(context: WatcherContext, wallets: Iterable[WalletConfig], now: Optional[float] = None) -> str:
    now = time.time() if now is None else now
    rows = []
    for wallet in wallets:
        adapter = context.registry.resolve(wallet.coin)
        state = context.store.get(wallet.id)
        current = state.current if state else None

        notes = ""
        if state is not None and state.alert_active:
            notes += '<br><span class="stale">Stale: no activity within the expected interval</span>'
        if state is not None and state.config_suspect:
            notes += '<br><span class="failing">Explorer does not know this address; check configuration</span>'
        elif state is not None and state.consecutive_failures:
            notes += (
                f'<br><span class="failing">Explorer unreachable '
                f'({_plural(state.consecutive_failures, "failed poll")})</span>'
            )

        rows.append(ROW_TEMPLATE.format(
            logo=html.escape(adapter.logo_url if adapter else ""),
            name=html.escape(wallet.display_name),
            explorer_url=html.escape(adapter.explorer_url(wallet.address) if adapter else ""),
            address=html.escape(wallet.address),
            balance=html.escape(_format_balance(current.balance if current else None, wallet.display_ticker)),
            last_active=format_timestamp(current.last_seen if current else None),
            elapsed=format_elapsed(now - current.last_seen) if current else "?",
            notes=notes,
        ))
    return PAGE_TEMPLATE.format(rows="".join(rows))


@router.get("/", response_class=HTMLResponse)
async def status_page(context: WatcherContext = Depends(get_context)) -> HTMLResponse:
    """Wallet status page."""
    return HTMLResponse(render_status_page(context, context.scheduler.wallets))
