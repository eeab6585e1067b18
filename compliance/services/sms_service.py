"""
SMS delivery through the Twilio REST API.

Like the email providers, ``send_sms`` returns a result dict and never
raises on delivery problems.
"""

import logging
import os
import re
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
MAX_SMS_LENGTH = 1600


class TwilioConfig:
    def __init__(self):
        self.account_sid = os.getenv('TWILIO_ACCOUNT_SID', '')
        self.auth_token = os.getenv('TWILIO_AUTH_TOKEN', '')
        self.from_number = os.getenv('TWILIO_PHONE_NUMBER', '')

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


def normalize_phone_number(phone: str) -> Optional[str]:
    """Return an E.164 number for 10-digit US numbers (or 11 with a leading 1)."""
    digits = re.sub(r'\D', '', phone or '')
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith('1'):
        return f"+{digits}"
    if phone and phone.strip().startswith('+') and 8 <= len(digits) <= 15:
        return f"+{digits}"
    return None


class SmsService:
    def __init__(self, config: Optional[TwilioConfig] = None):
        self.config = config or TwilioConfig()

    def send_sms(self, to_number: Optional[str], body: str) -> Dict[str, Any]:
        if not to_number:
            return {'success': False, 'error': 'No phone number configured for SMS alerts'}
        if not self.config.is_configured():
            return {'success': False, 'error': 'Twilio credentials not configured'}
        normalized = normalize_phone_number(to_number)
        if normalized is None:
            return {'success': False, 'error': f"Invalid phone number: {to_number}"}

        url = f"{TWILIO_API_BASE}/Accounts/{self.config.account_sid}/Messages.json"
        try:
            response = requests.post(
                url,
                data={'To': normalized, 'From': self.config.from_number, 'Body': body[:MAX_SMS_LENGTH]},
                auth=(self.config.account_sid, self.config.auth_token),
                timeout=15,
            )
        except requests.RequestException as e:
            logger.error("Twilio request failed: %s", e)
            return {'success': False, 'error': str(e)}

        if response.status_code >= 300:
            try:
                message = response.json().get('message') or response.text
            except ValueError:
                message = response.text
            logger.error("Twilio rejected SMS (HTTP %s): %s", response.status_code, message)
            return {'success': False, 'error': f"HTTP {response.status_code}: {message}"}

        sid = response.json().get('sid', '')
        logger.info("SMS sent to %s (sid=%s)", normalized, sid)
        return {'success': True, 'provider': 'twilio', 'message_id': sid}
