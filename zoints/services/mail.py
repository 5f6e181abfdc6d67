"""
Deliver one-time passcodes by email.

If the SMTP host and credentials are not configured, mail runs in simulation
mode: nothing is sent, and callers are told so they can report it.
"""

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

from flask import current_app

from ..domain import Purposes
from .exceptions import MailDeliveryFailed

logger = logging.getLogger(__name__)

SUBJECTS = {
    Purposes.SIGNUP: 'Verify your Zilcycler email address',
    Purposes.RESET: 'Reset Your Zilcycler Password',
    Purposes.CHANGE: 'Confirm your Zilcycler password change',
}

INTROS = {
    Purposes.SIGNUP: 'Use this code to finish creating your Zilcycler account.',
    Purposes.RESET: 'We received a request to reset your password for your '
                    'Zilcycler account.',
    Purposes.CHANGE: 'We received a request to change the password on your '
                     'Zilcycler account.',
}

HTML_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; \
padding: 20px; border: 1px solid #e0e0e0; border-radius: 10px;">
  <h2 style="color: #166534; text-align: center;">{subject}</h2>
  <p>Hello {name},</p>
  <p>{intro}</p>
  <div style="text-align: center; margin: 30px 0;">
    <span style="font-size: 32px; font-weight: bold; letter-spacing: 5px; \
color: #166534; background: #f0fdf4; padding: 10px 20px; \
border-radius: 5px;">{code}</span>
  </div>
  <p>This code is valid for <strong>{minutes} minutes</strong>.</p>
  <p style="color: #666; font-size: 12px; margin-top: 30px;">If you didn't \
request this, you can safely ignore this email.</p>
  <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;" />
  <p style="text-align: center; color: #999; font-size: 12px;">&copy; {year} \
Zilcycler. All rights reserved.</p>
</div>
"""


class MailSession(object):
    """An open session with an SMTP service."""

    def __init__(self, host: str, port: int, user: Optional[str] = None,
                 password: Optional[str] = None, secure: bool = False) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._secure = secure

    def _new_connection(self) -> smtplib.SMTP:
        if self._secure:
            return smtplib.SMTP_SSL(host=self._host, port=self._port,
                                    timeout=10)
        conn = smtplib.SMTP(host=self._host, port=self._port, timeout=10)
        conn.starttls()
        return conn

    def send_message(self, message: EmailMessage) -> None:
        with self._new_connection() as conn:
            if self._user:
                conn.login(self._user, self._password or '')
            conn.send_message(message)


def is_configured() -> bool:
    """Real delivery needs a host and credentials."""
    config = current_app.config
    return bool(config.get('SMTP_HOST') and config.get('SMTP_USER')
                and config.get('SMTP_PASS'))


def get_session() -> MailSession:
    config = current_app.config
    return MailSession(config['SMTP_HOST'], int(config.get('SMTP_PORT', 587)),
                       user=config.get('SMTP_USER'),
                       password=config.get('SMTP_PASS'),
                       secure=bool(config.get('SMTP_SECURE')))


def build_message(email: str, name: str, code: str, purpose: str,
                  ttl: int) -> EmailMessage:
    subject = SUBJECTS[purpose]
    minutes = max(1, ttl // 60)
    message = EmailMessage()
    message['Subject'] = subject
    message['From'] = current_app.config.get('SMTP_FROM')
    message['To'] = email
    message.set_content(f'Your Zilcycler code is: {code}. '
                        f'This code expires in {minutes} minutes.')
    message.add_alternative(HTML_TEMPLATE.format(
        subject=subject, name=name or 'there', intro=INTROS[purpose],
        code=code, minutes=minutes, year=datetime.now().year
    ), subtype='html')
    return message


def send_passcode(email: str, name: str, code: str, purpose: str,
                  ttl: int) -> bool:
    """
    Send a passcode to ``email``.

    Returns
    -------
    bool
        ``True`` if mail is in simulation mode and nothing was sent.

    Raises
    ------
    :class:`MailDeliveryFailed`

    """
    if not is_configured():
        logger.warning('SMTP is not configured; %s passcode not sent',
                       purpose)
        logger.debug('Simulated %s passcode for %s: %s', purpose, email, code)
        return True
    message = build_message(email, name, code, purpose, ttl)
    try:
        get_session().send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error('Failed to send %s passcode: %s', purpose, e)
        raise MailDeliveryFailed('Failed to send email') from e
    logger.info('Sent %s passcode', purpose)
    return False
