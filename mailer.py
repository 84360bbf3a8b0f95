from typing import Optional, Tuple

import resend
import structlog

from config import EMAIL_FROM, OTP_EXPIRE_MINUTES, RESEND_API_KEY

logger = structlog.get_logger(__name__)


def send_email(to: str, subject: str, html: str, text: str) -> Tuple[bool, Optional[str]]:
    if not RESEND_API_KEY:
        return False, "Resend API key is not configured."

    resend.api_key = RESEND_API_KEY
    payload = {
        "from": EMAIL_FROM,
        "to": [to],
        "subject": subject,
        "html": html,
        "text": text,
    }
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("email_send_failed", to=to, error=str(exc))
        return False, str(exc)

    if not isinstance(response, dict) or not response.get("id"):
        logger.error("email_send_failed", to=to, error=str(response))
        return False, str(response)

    return True, None


def send_vendor_otp(email: str, name: str, otp: str) -> Tuple[bool, Optional[str]]:
    text = (
        f"Hello {name},\n\n"
        f"Please use this OTP {otp} to complete your sign up and verify your vendor account.\n\n"
        f"This OTP is valid for {OTP_EXPIRE_MINUTES} minutes. Never share it with anyone.\n"
    )
    html = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Hello {name},</h2>
        <p>Please use the OTP below to complete your registration:</p>
        <div style="background: #f4f4f4; padding: 10px; margin: 20px 0; text-align: center; font-size: 24px; letter-spacing: 5px;">
          <strong>{otp}</strong>
        </div>
        <p>This OTP is valid for {OTP_EXPIRE_MINUTES} minutes.</p>
        <p><strong>Important:</strong> Never share this OTP with anyone.</p>
      </div>
    """
    return send_email(email, "Verify your vendor account", html, text)
