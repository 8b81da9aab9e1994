# mailer.py
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)


def _smtp_config():
    user = (os.environ.get("SMTP_USER") or "").strip()
    return {
        "host": (os.environ.get("SMTP_HOST") or "").strip(),
        "port": int(os.environ.get("SMTP_PORT") or 587),
        "user": user,
        "password": (os.environ.get("SMTP_PASSWORD") or "").strip(),
        "sender": (os.environ.get("SMTP_FROM") or user).strip(),
    }


def send_email(to_email: str, subject: str, body_html: str) -> bool:
    """Send a mail through the configured SMTP server. Returns False when not sent."""
    cfg = _smtp_config()
    if not cfg["host"] or not cfg["user"] or not cfg["password"]:
        logger.warning(f"[EMAIL] SKIP: No SMTP config. To={to_email}, Subject={subject}")
        return False

    msg = MIMEMultipart()
    msg["From"] = cfg["sender"]
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body_html, "html"))

    try:
        with smtplib.SMTP(cfg["host"], cfg["port"]) as server:
            server.starttls()
            server.login(cfg["user"], cfg["password"])
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[EMAIL] Failed to send email to {to_email}: {e}")
        return False


def send_verification_code(to_email: str, username: str, code: str) -> bool:
    body = f"""
    <div dir="ltr">
        Hi <b>{username}</b>,<br>
        Your StudyGenius confirmation code is <b style="font-size:20px">{code}</b>.<br>
        It expires in 10 minutes.
    </div>
    """
    sent = send_email(to_email, "Your StudyGenius confirmation code", body)
    if not sent:
        # Dev fallback: without SMTP the code is only visible in the log.
        logger.info(f"[EMAIL] Confirmation code for {to_email}: {code}")
    return sent
