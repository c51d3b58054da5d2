import smtplib
import ssl
from email.message import EmailMessage

from flask import current_app

from casino.errors import ExternalServiceFailure


def outbox():
    """Messages captured while MAIL_SUPPRESS_SEND is on."""
    return current_app.extensions.setdefault('casino_outbox', [])


def send_email(to_email: str, subject: str, body: str) -> None:
    """Send a plain text message, raising ExternalServiceFailure on SMTP errors."""
    cfg = current_app.config
    if cfg.get('MAIL_SUPPRESS_SEND'):
        outbox().append({'to': to_email, 'subject': subject, 'body': body})
        return
    host, username, password = cfg.get('SMTP_HOST'), cfg.get('SMTP_USERNAME'), cfg.get('SMTP_PASSWORD')
    sender = cfg.get('MAIL_FROM') or username
    if not (host and username and password and sender):
        # Unconfigured dev setup: park the message in the outbox, never log the body
        current_app.logger.warning(f"[mail-fake] SMTP not configured, kept in outbox to={to_email} subject={subject!r}")
        outbox().append({'to': to_email, 'subject': subject, 'body': body})
        return

    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.set_content(body)
    port = int(cfg.get('SMTP_PORT', 587))
    ctx = ssl.create_default_context()
    try:
        if port == 465:
            with smtplib.SMTP_SSL(host, port, context=ctx, timeout=10) as s:
                s.login(username, password)
                s.send_message(msg)
        else:
            with smtplib.SMTP(host, port, timeout=10) as s:
                s.starttls(context=ctx)
                s.login(username, password)
                s.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.error(f"[mail-error] to={to_email} subject={subject!r}: {exc}")
        raise ExternalServiceFailure('Email could not be sent') from exc
    current_app.logger.info(f"[mail] to={to_email} subject={subject!r}")


def verification_link(token: str) -> str:
    return f"{current_app.config['APP_URL'].rstrip('/')}/api/auth/verify/{token}"


def reset_link(token: str) -> str:
    return f"{current_app.config['APP_URL'].rstrip('/')}/auth/reset-password/{token}"


def send_verification(to_email: str, token: str) -> None:
    link = verification_link(token)
    send_email(
        to_email,
        'Verify your email address',
        f"Welcome to the casino!\n\nClick the link below to verify your email address:\n{link}\n",
    )


def send_password_reset(to_email: str, token: str) -> None:
    link = reset_link(token)
    minutes = int(current_app.config.get('RESET_TOKEN_TTL_SEC', 3600)) // 60
    send_email(
        to_email,
        'Reset your password',
        f"Click the link below to reset your password:\n{link}\n\nThis link will expire in {minutes} minutes.\n",
    )
