"""
QuickPay: create an open-banking payment and authorize it from the terminal.

Creates a bank-transfer payment, walks the payer through the server-driven
authorization flow (provider selection, consent, forms, redirect) and polls
until the payment is executed, settled or failed.

Usage
-----
    quickpay pay gbp 100 --name "Jane Doe" --scan 040004,12345678
    quickpay pay eur 250 --name "Jan Jansen" --iban NL91ABNA0417164300 --reference rent
    quickpay serve                   # redirect landing page + payment history
    quickpay pay ... --verbose       # DEBUG logging
    quickpay pay ... --dry-run       # scripted flow, no credentials needed

Configuration comes from QUICKPAY__* environment variables, a .env file or
~/.config/quickpay.toml (see quickpay.config).
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from quickpay.config import Settings, settings
from quickpay.database import async_session, init_db
from quickpay.engine.errors import ConfigurationError, ConsentDeclined, QuickPayError
from quickpay.engine.inputs import TerminalPrompter
from quickpay.engine.orchestrator import PaymentOutcome, execute_payment, format_status_line
from quickpay.models.enums import Currency
from quickpay.providers.schemas import (
    AccountIdentifier,
    Beneficiary,
    CreatePaymentRequest,
    Iban,
    PaymentUser,
    SortCodeAccountNumber,
)
from quickpay.providers.base import PaymentsApi
from quickpay.providers.mock_provider import MockPaymentsApi
from quickpay.providers.truelayer import ENVIRONMENTS, TrueLayerPaymentsApi

logger = logging.getLogger("quickpay")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_DECLINED = 2
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="quickpay",
        description="Create an open-banking payment and authorize it from the terminal",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=False,
        help="Enable DEBUG logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    pay = commands.add_parser("pay", help="Create and authorize a payment")
    pay.add_argument(
        "currency",
        type=str.lower,
        choices=["gbp", "eur"],
        help="Payment currency (gbp: pence, eur: cent)",
    )
    pay.add_argument("amount", type=int, help="Payment amount in currency minor units")
    pay.add_argument("--name", "-n", required=True, help="Name of the beneficiary")
    pay.add_argument(
        "--scan", "-s",
        metavar="SORT_CODE,ACCOUNT",
        help='Sort code and account number, e.g. "010102,12345678"',
    )
    pay.add_argument("--iban", "-i", help="Beneficiary IBAN")
    pay.add_argument("--reference", "-r", default="reference", help="Payment reference")
    pay.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Walk a scripted sandbox flow without calling the payments API",
    )

    serve = commands.add_parser("serve", help="Run the redirect landing page and history API")
    serve.add_argument("--host", default=None, help="Bind address (default: settings.callback_host)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: settings.callback_port)")

    return parser.parse_args(argv)


def _configure_logging(verbose: bool, log_level: str = "WARNING") -> None:
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def account_identifier(scan: Optional[str], iban: Optional[str]) -> AccountIdentifier:
    """IBAN wins over sort code + account number; one of them is required."""
    if iban:
        return Iban(iban=iban.replace(" ", ""))
    if scan:
        parts = [part.strip() for part in scan.split(",")]
        if len(parts) == 2 and all(parts):
            return SortCodeAccountNumber(
                sort_code=parts[0].replace("-", ""),
                account_number=parts[1],
            )
        raise ValueError(f"--scan must be SORT_CODE,ACCOUNT_NUMBER, got {scan!r}")
    raise ValueError("missing account identifier: pass --scan or --iban")


def build_payment_request(args: argparse.Namespace, cfg: Settings) -> CreatePaymentRequest:
    return CreatePaymentRequest(
        amount_in_minor=args.amount,
        currency=Currency(args.currency.upper()),
        beneficiary=Beneficiary(
            account_holder_name=args.name,
            reference=args.reference,
            account_identifier=account_identifier(args.scan, args.iban),
        ),
        user=PaymentUser(name=cfg.user_name, email=cfg.user_email),
    )


def _build_api(cfg: Settings) -> TrueLayerPaymentsApi:
    missing = cfg.missing_credentials()
    if missing:
        raise ConfigurationError(
            f"Missing configuration: {', '.join(missing)} "
            "(set QUICKPAY__<NAME> or add them to ~/.config/quickpay.toml)"
        )
    if cfg.environment not in ENVIRONMENTS:
        raise ConfigurationError(
            f"Unknown environment {cfg.environment!r}, expected one of: {', '.join(ENVIRONMENTS)}"
        )
    return TrueLayerPaymentsApi(
        client_id=cfg.client_id,
        client_secret=cfg.client_secret,
        signing_kid=cfg.client_kid,
        signing_private_key=cfg.client_private_key,
        environment=cfg.environment,
        timeout=cfg.http_timeout_seconds,
    )


def _return_uri(cfg: Settings) -> str:
    return cfg.redirect_uri or f"http://{cfg.callback_host}:{cfg.callback_port}/callback"


async def _pay(request: CreatePaymentRequest, cfg: Settings, dry_run: bool = False) -> PaymentOutcome:
    api: PaymentsApi = MockPaymentsApi.demo() if dry_run else _build_api(cfg)
    prompter = TerminalPrompter()
    try:
        await init_db()
        async with async_session() as session:
            outcome = await execute_payment(
                session,
                api,
                prompter,
                request,
                return_uri=_return_uri(cfg),
                poll_interval=cfg.poll_interval_seconds,
                poll_timeout=cfg.poll_timeout_seconds,
            )
    finally:
        await api.close()

    prompter.show(format_status_line(outcome.status))
    return outcome


def _serve(host: Optional[str], port: Optional[int], cfg: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "quickpay.api.app:app",
        host=host or cfg.callback_host,
        port=port or cfg.callback_port,
        log_level=cfg.log_level.lower(),
    )
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose, settings.log_level)

    if args.command == "serve":
        return _serve(args.host, args.port, settings)

    try:
        request = build_payment_request(args, settings)
    except ValueError as exc:
        logger.error("Invalid payment: %s", exc)
        return EXIT_USAGE

    try:
        asyncio.run(_pay(request, settings, dry_run=args.dry_run))
    except ConsentDeclined as exc:
        logger.warning("%s - payment abandoned", exc)
        return EXIT_DECLINED
    except QuickPayError as exc:
        logger.error("Payment failed: %s", exc)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted - the authorization flow was left unresolved")
        return EXIT_INTERRUPTED
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
