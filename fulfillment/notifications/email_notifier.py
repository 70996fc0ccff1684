"""
Email Notifications

Sends supplier private keys over SMTP. Delivery is best effort: failures are
logged and reported as False, never raised into the caller's workflow.
"""

import logging
import os
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

PRIVATE_KEY_SUBJECT = "Your Supplier Private Key - IMPORTANT: Save Securely"


def send_email_smtp(to_email: str, subject: str, html_body: str, text_body: str = None) -> bool:
    """
    Generic SMTP email sender.

    Port 465 uses implicit SSL, anything else STARTTLS.

    Returns:
        True if the message was handed to the SMTP server
    """
    smtp_host = os.getenv("SMTP_HOST", "smtp.gmail.com")
    smtp_port = int(os.getenv("SMTP_PORT", "587"))
    smtp_user = os.getenv("SMTP_USER")
    smtp_password = os.getenv("SMTP_PASSWORD")
    from_email = os.getenv("EMAILS_FROM_EMAIL", smtp_user)

    if not smtp_user or not smtp_password:
        logger.error("SMTP credentials not configured in .env")
        return False

    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = f"Custody Ledger <{from_email}>"
    msg['To'] = to_email
    if text_body:
        msg.attach(MIMEText(text_body, 'plain'))
    msg.attach(MIMEText(html_body, 'html'))

    try:
        if smtp_port == 465:
            with smtplib.SMTP_SSL(smtp_host, smtp_port, timeout=30) as server:
                server.login(smtp_user, smtp_password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(smtp_host, smtp_port, timeout=30) as server:
                server.starttls()
                server.login(smtp_user, smtp_password)
                server.send_message(msg)
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed for {smtp_user}@{smtp_host}:{smtp_port}: {e}")
        return False
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Email to {to_email} failed: {e}")
        return False

    logger.info(f"Email sent to {to_email}")
    return True


def _private_key_bodies(name: str, private_key: str):
    text_body = f"""
Dear {name},

Your supplier account has been approved.

Below is your PRIVATE KEY for signing orders. This key is required when you approve orders.

IMPORTANT SECURITY NOTES:
1. Save this key securely - we will NOT send it again
2. Never share this key with anyone
3. If compromised, contact admin immediately

Your Private Key:
{private_key}

How to use:
When approving customer orders, paste this private key to digitally sign the order.
The signature proves the order is authentic and from your business.

Best regards,
Custody Ledger
"""
    html_body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2563eb;">Your Supplier Account is Approved</h2>
  <p>Dear {name},</p>
  <div style="background-color: #fef3c7; border: 1px solid #f59e0b; padding: 15px; border-radius: 8px;">
    <h3 style="color: #d97706; margin-top: 0;">IMPORTANT SECURITY NOTES</h3>
    <ul style="margin: 0;">
      <li>Save this key securely - we will <strong>NOT</strong> send it again</li>
      <li>Never share this key with anyone</li>
      <li>If compromised, contact admin immediately</li>
    </ul>
  </div>
  <h3>Your Private Key:</h3>
  <pre style="background-color: #1f2937; color: #10b981; padding: 15px; border-radius: 8px; font-size: 11px;">{private_key}</pre>
  <p>When approving customer orders, paste this private key to digitally sign the order.</p>
</div>
"""
    return text_body, html_body


def send_private_key_email(email: str, name: str, private_key: str) -> bool:
    """Email a newly provisioned private key to its supplier."""
    text_body, html_body = _private_key_bodies(name, private_key)
    sent = send_email_smtp(email, PRIVATE_KEY_SUBJECT, html_body, text_body)
    if sent:
        logger.info(f"Private key emailed to supplier {email}")
    else:
        logger.error(f"Failed to email private key to supplier {email}")
    return sent


def send_private_key_email_async(email: str, name: str, private_key: str) -> threading.Thread:
    """Send the private key email on a background thread."""
    thread = threading.Thread(
        target=send_private_key_email,
        args=(email, name, private_key),
        name="private-key-email",
        daemon=True
    )
    thread.start()
    return thread
