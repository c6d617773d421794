"""
Outgoing email

Thin wrapper over smtplib. Connections are opened with SMTP_TIMEOUT.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Iterable, Optional

from fastapi import Request

import config

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, host: Optional[str], port: int, username: Optional[str], password: Optional[str],
                 sender: str, secure: bool = False, timeout: float = 10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.secure = secure
        self.timeout = timeout

    @classmethod
    def from_config(cls):
        return cls(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASS,
            sender=config.MAIL_FROM,
            secure=config.SMTP_SECURE,
            timeout=config.SMTP_TIMEOUT,
        )

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if not self.secure:
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
        except BaseException:
            server.close()
            raise
        return server

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None):
        """Send one message. Raises smtplib.SMTPException or OSError on failure."""
        if not self.host:
            logger.warning("SMTP_HOST not configured, skipping email %r to %s", subject, to)
            return
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        if html:
            msg.attach(MIMEText(html, "html"))
        with self._connect() as server:
            server.sendmail(self.sender, [to], msg.as_string())
        logger.info("Email %r sent to %s", subject, to)

    def send_quietly(self, to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        try:
            self.send(to, subject, text, html)
            return True
        except (smtplib.SMTPException, OSError):
            logger.exception("Error sending email %r to %s", subject, to)
            return False

    def broadcast(self, recipients: Iterable[str], subject: str, text: str) -> int:
        sent = 0
        for to in recipients:
            if self.send_quietly(to, subject, text):
                sent += 1
        logger.info("Broadcast %r delivered to %d recipient(s)", subject, sent)
        return sent


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


# ----------------------- Templates -----------------------
def order_confirmation(name: str, order: dict):
    subject = "Order Confirmation"
    lines = "\n".join(f"  - {item['productId']} x {item['quantity']}" for item in order["productsOrdered"])
    text = (
        f"{config.STORE_NAME}\n\n"
        f"Hi {name},\n\n"
        f"Thank you for your order! We will notify you once it ships.\n\n"
        f"Order ID: {order['orderId']}\n"
        f"Tracking ID: {order['trackingId']}\n"
        f"Date: {order['date']} {order['time']}\n"
        f"Shipping address: {order['address']}\n"
        f"Items:\n{lines}\n"
        f"Total: {order['price']}\n"
    )
    rows = "".join(
        f"<tr><td>{item['productId']}</td><td>{item['quantity']}</td></tr>" for item in order["productsOrdered"]
    )
    html = (
        f"<h2>{config.STORE_NAME}</h2>"
        f"<p>Hi {escape(name)},</p>"
        f"<p>Thank you for your order! We will notify you once it ships.</p>"
        f"<p><strong>Order ID:</strong> {order['orderId']}<br>"
        f"<strong>Tracking ID:</strong> {order['trackingId']}<br>"
        f"<strong>Date:</strong> {order['date']} {order['time']}<br>"
        f"<strong>Shipping address:</strong> {escape(order['address'])}</p>"
        f"<table><tr><th>Product</th><th>Qty</th></tr>{rows}</table>"
        f"<p><strong>Total:</strong> {order['price']}</p>"
    )
    return subject, text, html


def complaint_acknowledgement(complaint_number: str, message: str):
    subject = "Complaint Registration Confirmation"
    footer = (
        "Thank you for reaching out to us! Our specialists are working on resolving your issue, "
        "and you can expect a response within 24 hours.\n\n"
        "This is an automated email. Please do not reply to this message."
    )
    text = (
        f"{config.STORE_NAME}\n"
        f"Complaint Registration Confirmation\n\n"
        f"Complaint ID: {complaint_number}\n\n"
        f"Issue Description:\n{message}\n\n"
        f"{footer}\n"
    )
    html = (
        f"<h2>{config.STORE_NAME}</h2>"
        f"<h3>Complaint Registration Confirmation</h3>"
        f"<p><strong>Complaint ID:</strong> {complaint_number}</p>"
        f"<p><strong>Issue Description:</strong><br>{escape(message)}</p>"
        f"<p>{footer.replace(chr(10) * 2, '</p><p>')}</p>"
    )
    return subject, text, html


def coupon_created(code: str, discount) -> tuple:
    return (
        "New Coupon Available!",
        f"A new coupon {code} is now available with {discount:g}% discount. Use it in your next purchase!",
    )


def coupon_expired(code: str, discount) -> tuple:
    return "Coupon Expired", f"The coupon {code} with {discount:g}% discount has expired."
