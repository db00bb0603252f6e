"""Order confirmation emails over SMTP."""
import html
import os
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from .config import STORE_NAME, env_bool, env_int, require_env, require_int_env
from .log import get_logger
from .models import StoredOrder

logger = get_logger(__name__)


def format_currency(value: float) -> str:
    return f"${value:,.2f}"


def render_order_confirmation(order: StoredOrder, store_name: str = STORE_NAME) -> dict:
    """Subject, plain-text body and HTML alternative for ``order``."""
    lines = [
        f"Hi {order.customer.name},",
        "",
        f"We've received your order {order.order_number}.",
        "",
        "Order summary",
    ]
    for item in order.items:
        lines.append(f"  {item.short_name} x{item.quantity}  {format_currency(item.price * item.quantity)}")
    totals = order.totals
    lines += [
        "",
        f"Subtotal: {format_currency(totals.subtotal)}",
        f"Shipping: {format_currency(totals.shipping)}",
        f"Tax: {format_currency(totals.tax)}",
        f"Grand Total: {format_currency(totals.grand_total)}",
        "",
        "Shipping to:",
        f"  {order.shipping.address}",
        f"  {order.shipping.city} {order.shipping.zip_code}",
        f"  {order.shipping.country}",
        "",
        f"Payment method: {order.payment.method}",
        "",
        f"Thank you for shopping with {store_name}!",
    ]

    rows = "".join(
        f"<tr><td>{html.escape(item.short_name)} x{item.quantity}</td>"
        f"<td align=\"right\">{format_currency(item.price * item.quantity)}</td></tr>"
        for item in order.items
    )
    html_body = (
        f"<p>Hi {html.escape(order.customer.name)},</p>"
        f"<p>We've received your order <strong>{html.escape(order.order_number)}</strong>.</p>"
        f"<table>{rows}"
        f"<tr><td>Subtotal</td><td align=\"right\">{format_currency(totals.subtotal)}</td></tr>"
        f"<tr><td>Shipping</td><td align=\"right\">{format_currency(totals.shipping)}</td></tr>"
        f"<tr><td>Tax</td><td align=\"right\">{format_currency(totals.tax)}</td></tr>"
        f"<tr><td><strong>Grand Total</strong></td>"
        f"<td align=\"right\"><strong>{format_currency(totals.grand_total)}</strong></td></tr>"
        f"</table>"
        f"<p>Thank you for shopping with {html.escape(store_name)}!</p>"
    )

    return {
        "subject": f"Your {store_name} order {order.order_number} is confirmed",
        "body": "\n".join(lines) + "\n",
        "html_body": html_body,
    }


@dataclass
class SmtpSettings:
    host: str
    port: int
    user: str
    password: str
    secure: bool = False
    timeout: Optional[float] = None
    sender: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SmtpSettings":
        timeout = env_int("SMTP_TIMEOUT", 0)
        return cls(
            host=require_env("SMTP_HOST"),
            port=require_int_env("SMTP_PORT"),
            user=require_env("SMTP_USER"),
            password=require_env("SMTP_PASS"),
            secure=env_bool("SMTP_SECURE"),
            timeout=timeout or None,
            sender=os.getenv("EMAIL_FROM") or None,
        )


class SmtpMailer:
    """Sends confirmations with a fresh SMTP session per message."""

    def __init__(self, settings: SmtpSettings, store_name: str = STORE_NAME):
        self.settings = settings
        self.store_name = store_name

    @classmethod
    def from_env(cls) -> "SmtpMailer":
        return cls(SmtpSettings.from_env())

    @property
    def sender(self) -> str:
        return self.settings.sender or f"{self.store_name} <{self.settings.user}>"

    def build_message(self, order: StoredOrder) -> EmailMessage:
        content = render_order_confirmation(order, self.store_name)
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = order.customer.email_address
        message["Subject"] = content["subject"]
        message.set_content(content["body"])
        message.add_alternative(content["html_body"], subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        settings = self.settings
        kwargs = {"timeout": settings.timeout} if settings.timeout else {}
        if settings.secure:
            return smtplib.SMTP_SSL(settings.host, settings.port, **kwargs)
        return smtplib.SMTP(settings.host, settings.port, **kwargs)

    def send_order_confirmation(self, order: StoredOrder) -> None:
        message = self.build_message(order)
        with self._connect() as server:
            if not self.settings.secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            server.login(self.settings.user, self.settings.password)
            server.send_message(message)
        logger.info("Order confirmation sent", order_number=order.order_number)

    def close(self) -> None:
        pass
