"""Price drop alert email via SMTP."""

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from pricewatch.models import AlertMode, Product, Subscription

logger = logging.getLogger(__name__)


def build_subject(product: Product) -> str:
    return f"Price Alert: {product.title[:50]} now ${product.current_price:,.2f}"


def build_body(product: Product, subscription: Subscription) -> str:
    if subscription.alert_mode is AlertMode.PERCENTAGE_DROP:
        trigger = f"Alert: {subscription.percentage_threshold:g}% below original price"
    else:
        trigger = f"Target Price: ${subscription.target_price:,.2f}"

    lines = [
        "pricewatch - Price Drop Alert",
        "",
        f"Product: {product.title}",
        f"Current Price: ${product.current_price:,.2f}",
    ]
    if product.original_price:
        lines.append(f"Original Price: ${product.original_price:,.2f}")
    if product.lowest_price is not None:
        lines.append(f"Lowest Tracked: ${product.lowest_price:,.2f}")
    lines += [trigger, "", f"URL: {product.url}"]
    return "\n".join(lines)


def send_price_drop_alert(recipient: str, product: Product, subscription: Subscription) -> bool:
    """
    Send a price drop alert email.

    Uses SMTP_HOST/SMTP_PORT with SMTP_USER and SMTP_PASS.
    SMTP_FROM defaults to SMTP_USER if unset or empty.
    """
    host = os.environ.get("SMTP_HOST", "smtp.gmail.com")
    port = int(os.environ.get("SMTP_PORT", "587"))
    user = os.environ.get("SMTP_USER")
    password = os.environ.get("SMTP_PASS")
    from_addr = os.environ.get("SMTP_FROM") or user

    if not user or not password:
        logger.warning("Email: SMTP_USER or SMTP_PASS not set")
        return False

    msg = MIMEMultipart()
    msg["From"] = from_addr
    msg["To"] = recipient
    msg["Subject"] = build_subject(product)
    msg.attach(MIMEText(build_body(product, subscription), "plain"))

    try:
        logger.debug("Email: sending alert to %s", recipient)
        with smtplib.SMTP(host, port, timeout=30) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(from_addr, recipient, msg.as_string())
        logger.info("Email: alert sent to %s for %s", recipient, product.asin)
        return True
    except smtplib.SMTPAuthenticationError as e:
        logger.error("Email authentication failed: %s", e)
        return False
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Email SMTP error: %s", e)
        return False
