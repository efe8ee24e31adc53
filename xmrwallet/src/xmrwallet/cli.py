"""
Monero account CLI - Watch an account, query balances and keys, and send funds.
"""

from __future__ import annotations

import asyncio
import sys

import typer
from loguru import logger

from xmrwallet.backends.wallet_rpc import DEFAULT_RPC_TIMEOUT, MoneroWalletRpc
from xmrwallet.config import Settings
from xmrwallet.wallet.events import (
    AddressReceived,
    BalanceChanged,
    Initialized,
    TransactionChanged,
    TransactionReceived,
)
from xmrwallet.wallet.models import (
    DEFAULT_MIX_COUNT,
    AccountKeyType,
    Payment,
    TransferRecipient,
)
from xmrwallet.wallet.service import AccountService
from xmrwallet.wallet.sync import DEFAULT_ACCOUNT_REFRESH_PERIOD

app = typer.Typer(
    name="xmr-wallet",
    help="Monero wallet RPC account client",
    add_completion=False,
)

# 1 XMR = 10^12 atomic units
ATOMIC_UNITS_PER_XMR = 10**12


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def format_amount(atomic_units: int) -> str:
    """Format atomic units as XMR with all 12 decimals."""
    whole, fraction = divmod(atomic_units, ATOMIC_UNITS_PER_XMR)
    return f"{whole}.{fraction:012d} XMR"


RpcUrlOption = typer.Option("http://127.0.0.1:18082", "--rpc-url", envvar="XMR_RPC_URL")
RpcUserOption = typer.Option("", "--rpc-user", envvar="XMR_RPC_USER")
RpcPasswordOption = typer.Option("", "--rpc-password", envvar="XMR_RPC_PASSWORD")
RpcTimeoutOption = typer.Option(DEFAULT_RPC_TIMEOUT, "--rpc-timeout", envvar="XMR_RPC_TIMEOUT")
LogLevelOption = typer.Option("INFO", "--log-level", "-l", envvar="XMR_LOG_LEVEL")


def _make_account(settings: Settings) -> AccountService:
    rpc = MoneroWalletRpc(
        rpc_url=settings.rpc_url,
        rpc_user=settings.rpc_user,
        rpc_password=settings.rpc_password,
        timeout=settings.rpc_timeout,
    )
    return AccountService(rpc, refresh_period=settings.account_refresh_period)


@app.command()
def watch(
    rpc_url: str = RpcUrlOption,
    rpc_user: str = RpcUserOption,
    rpc_password: str = RpcPasswordOption,
    rpc_timeout: float = RpcTimeoutOption,
    refresh_period: float = typer.Option(
        DEFAULT_ACCOUNT_REFRESH_PERIOD,
        "--refresh-period",
        "-p",
        envvar="XMR_ACCOUNT_REFRESH_PERIOD",
        help="Seconds between account refreshes",
    ),
    log_level: str = LogLevelOption,
) -> None:
    """Follow the account and log every change until interrupted."""
    setup_logging(log_level)
    settings = Settings(
        rpc_url=rpc_url,
        rpc_user=rpc_user,
        rpc_password=rpc_password,
        rpc_timeout=rpc_timeout,
        account_refresh_period=refresh_period,
        log_level=log_level,
    )

    try:
        asyncio.run(_watch(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


async def _watch(settings: Settings) -> None:
    account = _make_account(settings)

    account.subscribe(AddressReceived, lambda e: logger.info(f"Address: {e.address}"))
    account.subscribe(
        BalanceChanged,
        lambda e: logger.info(
            f"Balance: {format_amount(e.balance.total)} "
            f"(unlocked {format_amount(e.balance.unlocked)})"
        ),
    )
    account.subscribe(
        TransactionReceived,
        lambda e: logger.info(
            f"New transaction #{e.transaction.index} {e.transaction.transaction_id}: "
            f"{format_amount(e.transaction.amount_spendable)} spendable"
        ),
    )
    account.subscribe(
        TransactionChanged,
        lambda e: logger.info(
            f"Transaction #{e.index} {e.transaction.transaction_id} changed: "
            f"{format_amount(e.transaction.amount_spendable)} spendable"
        ),
    )
    account.subscribe(
        Initialized,
        lambda _: logger.info(f"Account ready: {len(account.transactions)} transaction(s)"),
    )

    try:
        await account.initialize()
        while True:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        logger.info("Watcher cancelled")
    finally:
        await account.close()


@app.command()
def balance(
    rpc_url: str = RpcUrlOption,
    rpc_user: str = RpcUserOption,
    rpc_password: str = RpcPasswordOption,
    rpc_timeout: float = RpcTimeoutOption,
    log_level: str = LogLevelOption,
) -> None:
    """Display the account address and balance."""
    setup_logging(log_level)
    settings = Settings(
        rpc_url=rpc_url, rpc_user=rpc_user, rpc_password=rpc_password, rpc_timeout=rpc_timeout
    )
    if not asyncio.run(_show_balance(settings)):
        raise typer.Exit(1)


async def _show_balance(settings: Settings) -> bool:
    account = _make_account(settings)
    try:
        await account.refresh()

        if account.address is None or account.balance is None:
            logger.error(f"Could not query the wallet at {settings.rpc_url}")
            return False

        typer.echo(f"Address:  {account.address}")
        typer.echo(f"Total:    {format_amount(account.balance.total)}")
        typer.echo(f"Unlocked: {format_amount(account.balance.unlocked)}")
        typer.echo(f"Transactions: {len(account.transactions)}")
        return True
    finally:
        await account.close(save=False)


@app.command()
def key(
    key_type: AccountKeyType = typer.Argument(AccountKeyType.VIEW_KEY),
    rpc_url: str = RpcUrlOption,
    rpc_user: str = RpcUserOption,
    rpc_password: str = RpcPasswordOption,
    rpc_timeout: float = RpcTimeoutOption,
    log_level: str = LogLevelOption,
) -> None:
    """Display a secret key of the account."""
    setup_logging(log_level)
    settings = Settings(
        rpc_url=rpc_url, rpc_user=rpc_user, rpc_password=rpc_password, rpc_timeout=rpc_timeout
    )

    value = asyncio.run(_query_key(settings, key_type))
    if value is None:
        logger.error(f"Could not query {key_type.value}")
        raise typer.Exit(1)

    typer.echo(value)


async def _query_key(settings: Settings, key_type: AccountKeyType) -> str | None:
    account = _make_account(settings)
    try:
        return await account.query_key(key_type)
    finally:
        await account.close(save=False)


@app.command()
def payments(
    payment_ids: list[str] = typer.Option(
        [], "--payment-id", "-i", help="Filter by payment id (repeatable)"
    ),
    min_height: int = typer.Option(0, "--min-height", help="Minimum block height"),
    rpc_url: str = RpcUrlOption,
    rpc_user: str = RpcUserOption,
    rpc_password: str = RpcPasswordOption,
    rpc_timeout: float = RpcTimeoutOption,
    log_level: str = LogLevelOption,
) -> None:
    """List incoming payments."""
    setup_logging(log_level)
    settings = Settings(
        rpc_url=rpc_url, rpc_user=rpc_user, rpc_password=rpc_password, rpc_timeout=rpc_timeout
    )

    result = asyncio.run(_query_payments(settings, payment_ids, min_height))
    if result is None:
        logger.error("Could not query payments")
        raise typer.Exit(1)

    if not result:
        typer.echo("No payments found")
        return

    for payment in result:
        typer.echo(
            f"{payment.payment_id}  {payment.transaction_id}  "
            f"{format_amount(payment.amount)}  height={payment.block_height}"
        )


async def _query_payments(
    settings: Settings, payment_ids: list[str], min_height: int
) -> list[Payment] | None:
    account = _make_account(settings)
    try:
        return await account.query_payments(payment_ids or None, min_height)
    finally:
        await account.close(save=False)


@app.command()
def send(
    address: str = typer.Argument(..., help="Destination address"),
    amount: int = typer.Argument(..., help="Amount in atomic units"),
    payment_id: str | None = typer.Option(None, "--payment-id", help="Payment id"),
    mix_count: int = typer.Option(DEFAULT_MIX_COUNT, "--mix-count", "-m", help="Decoy inputs"),
    rpc_url: str = RpcUrlOption,
    rpc_user: str = RpcUserOption,
    rpc_password: str = RpcPasswordOption,
    rpc_timeout: float = RpcTimeoutOption,
    log_level: str = LogLevelOption,
) -> None:
    """Send funds to an address."""
    setup_logging(log_level)
    settings = Settings(
        rpc_url=rpc_url, rpc_user=rpc_user, rpc_password=rpc_password, rpc_timeout=rpc_timeout
    )

    if amount <= 0:
        logger.error("Amount must be positive")
        raise typer.Exit(1)

    recipient = TransferRecipient(address=address, amount=amount)
    if not asyncio.run(_send(settings, recipient, payment_id, mix_count)):
        raise typer.Exit(1)


async def _send(
    settings: Settings,
    recipient: TransferRecipient,
    payment_id: str | None,
    mix_count: int,
) -> bool:
    account = _make_account(settings)
    try:
        if not await account.send_transaction(recipient, payment_id, mix_count):
            return False

        for txid in account.last_sent_transaction_ids:
            typer.echo(f"Sent: {txid}")
        if account.balance is not None:
            typer.echo(f"Balance: {format_amount(account.balance.total)}")
        return True
    finally:
        await account.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
