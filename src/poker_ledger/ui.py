"""Interactive UI components for recording settlements."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import PaymentMethod, SettlementTransfer

logger = logging.getLogger(__name__)


class PaymentMethodCompleter(Completer):
    """Prefix completer for payment methods, matched on label or value."""

    def __init__(self, methods: list[PaymentMethod] | None = None):
        """Initialize the completer with available payment methods."""
        self.methods = methods or list(PaymentMethod)
        self.label_to_method = {}
        for method in self.methods:
            self.label_to_method[method.label.lower()] = method
            self.label_to_method[method.value] = method

    def get_completions(self, document: Document, complete_event: Any):
        """Get completions whose label starts with the typed text."""
        query = document.text.lower()
        for method in self.methods:
            if method.label.lower().startswith(query):
                yield Completion(
                    text=method.label,
                    start_position=-len(document.text),
                    display=method.label,
                )

    def resolve(self, text: str) -> PaymentMethod | None:
        """Map typed text back to a payment method."""
        return self.label_to_method.get(text.strip().lower())


def select_payment_method_interactive(
    transfer: SettlementTransfer,
    default: PaymentMethod = PaymentMethod.CASH,
) -> PaymentMethod | None:
    """
    Ask how a transfer was paid.

    Args:
        transfer: The transfer being marked paid
        default: Method pre-filled in the prompt

    Returns:
        Selected payment method, or None to skip
    """
    print(
        f"\n💸 {transfer.from_user_id} → {transfer.to_user_id}: "
        f"${transfer.amount:.2f}"
    )
    print("   Type to search, press Enter to confirm, Ctrl+C to skip\n")

    completer = PaymentMethodCompleter()
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        default_text = default.label
        while True:
            result = session.prompt(
                "Paid with: ",
                default=default_text,
                complete_while_typing=True,
            )

            if not result:
                return None

            method = completer.resolve(result)
            if method:
                logger.info(f"User selected payment method: {method.value}")
                return method

            print("❌ Unknown payment method. Choose Cash, Venmo, PayPal or Zelle.")
            default_text = ""

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return None
    except EOFError:
        return None


def confirm_close(total_buyin: str, total_cashout: str) -> bool:
    """Simple yes/no confirmation before completing a game."""
    print(f"\n🃏 Buy-ins: {total_buyin}   Cash-outs: {total_cashout}")

    response = input("   Close this game? [Y/n] ").strip().lower()

    return response in ("", "y", "yes")
