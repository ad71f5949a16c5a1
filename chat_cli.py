#!/usr/bin/env python3
"""
Factura Chat - Terminal Client

Drives one invoicing conversation from the terminal. Type a request such as
"Factura B para María García DNI 30123456 por $25000", answer the follow-up
questions and confirm with "sí".

Usage:
    python chat_cli.py --api-url http://localhost:3001/api
    python chat_cli.py --offline          # fabricate invoices in-process
"""

import argparse
import asyncio

from factura_chat.core.config import settings
from factura_chat.core.errors import ConversationBusyError
from factura_chat.core.logging import setup_logging
from factura_chat.models.chat import Speaker, Stage
from factura_chat.services.billing_client import InvoicingClient
from factura_chat.services.billing_mock import LocalInvoicingService
from factura_chat.services.conversation import ConversationController

EXIT_COMMANDS = {"salir", "exit", "quit"}
CLEAR_COMMANDS = {"/limpiar", "/clear"}

STAGE_EMOJI = {
    Stage.INITIAL: "💬",
    Stage.COLLECTING: "📝",
    Stage.CONFIRMING: "❓",
    Stage.GENERATING: "🔄",
    Stage.COMPLETED: "✅",
}


def print_turns(turns):
    for turn in turns:
        if turn.speaker == Speaker.ASSISTANT:
            print()
            print("🤖 " + turn.text.replace("\n", "\n   "))
    print()


async def run(controller: ConversationController):
    print("=" * 70)
    print("🧾 FACTURA CHAT - EMISIÓN DE FACTURAS")
    print("=" * 70)

    print_turns(await controller.start())
    print("💡 Ejemplo: Factura B para María García DNI 30123456 por $25000")
    print("Comandos: /limpiar para empezar de nuevo, salir para terminar")
    print("=" * 70)
    print()

    while True:
        try:
            text = await asyncio.to_thread(input, f"{STAGE_EMOJI[controller.stage]} > ")
        except (EOFError, KeyboardInterrupt):
            break

        command = text.strip().lower()
        if command in EXIT_COMMANDS:
            break
        if command in CLEAR_COMMANDS:
            controller.clear()
            print("🧹 Conversación reiniciada\n")
            continue

        try:
            print_turns(await controller.send(text))
        except ConversationBusyError as e:
            print(f"⏳ {e}")

    print("\n👋 ¡Hasta luego!")


def main():
    parser = argparse.ArgumentParser(
        description='Chat with the invoicing assistant from the terminal'
    )
    parser.add_argument(
        '--api-url',
        default=settings.billing_api_base_url,
        help=f'Billing backend base URL (default: {settings.billing_api_base_url})'
    )
    parser.add_argument(
        '--offline',
        action='store_true',
        help='Fabricate invoices in-process instead of calling the billing backend'
    )
    parser.add_argument(
        '--test-mode',
        action='store_true',
        help='Fill missing fields with demo values for "prueba"/"test" requests'
    )
    parser.add_argument(
        '--log-level',
        default='WARNING',
        help='Log level for the terminal session (default: WARNING)'
    )

    args = parser.parse_args()
    setup_logging(args.log_level)

    config = settings.model_copy(update={
        "billing_api_base_url": args.api_url,
        "test_mode_autofill": args.test_mode or settings.test_mode_autofill,
    })
    service = LocalInvoicingService(config) if args.offline else InvoicingClient(config)

    try:
        asyncio.run(run(ConversationController(service, config)))
    except KeyboardInterrupt:
        print("\n\n👋 ¡Hasta luego!")


if __name__ == "__main__":
    main()
