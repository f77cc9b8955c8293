"""Channel senders: email via Mailgun (or SendGrid), SMS via a {to, message} webhook (or Twilio).

Senders return True/False. send_verification_code turns a False into ChannelDispatchFailed
so the verification store can record it; nothing here retries.
"""
import logging

import httpx

from smshub.config import get_settings
from smshub.hubs import TenantContext
from smshub.services.compliance import format_phone_to_e164
from smshub.services.errors import ChannelDispatchFailed

logger = logging.getLogger(__name__)

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"
HTTP_TIMEOUT_SECONDS = 10.0


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None, from_name: str = "SMS Hub") -> bool:
    """Send email via Mailgun (preferred) or SendGrid. Returns True if the provider accepted it."""
    settings = get_settings()
    if settings.mailgun_api_key and settings.mailgun_domain:
        logger.info("[Email] Calling Mailgun API: to=%s subject=%s domain=%s", to_email, subject, settings.mailgun_domain)
        return _send_email_mailgun(to_email, subject, html_content, text_content, from_name, settings)
    if settings.sendgrid_api_key:
        return _send_email_sendgrid(to_email, subject, html_content, text_content, from_name, settings)
    logger.warning(
        "[Email] NOT SENT: to=%s subject=%s. MAILGUN_API_KEY=%s MAILGUN_DOMAIN=%s SENDGRID_API_KEY=%s",
        to_email,
        subject,
        "set" if settings.mailgun_api_key else "MISSING",
        "set" if settings.mailgun_domain else "MISSING",
        "set" if settings.sendgrid_api_key else "MISSING",
    )
    return False


def _send_email_mailgun(to_email, subject, html_content, text_content, from_name, settings) -> bool:
    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    domain = settings.mailgun_domain.lower()
    from_addr = settings.mailgun_from_email
    from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
    if from_domain != domain:
        # Mailgun drops mail whose sender domain differs from the sending domain
        from_addr = f"noreply@{domain}"
    data = {
        "from": f"{from_name} <{from_addr}>",
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=HTTP_TIMEOUT_SECONDS) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if 200 <= r.status_code < 300:
                logger.info("[Mailgun] API success: to=%s status=%s", to_email, r.status_code)
                return True
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                logger.info("[Mailgun] 401 with US endpoint. Retrying with EU endpoint...")
                r2 = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
                if 200 <= r2.status_code < 300:
                    logger.info("[Mailgun] API success (EU): to=%s", to_email)
                    return True
                logger.warning("[Mailgun] EU request failed: status=%s body=%s", r2.status_code, r2.text[:500])
                return False
            logger.warning("[Mailgun] API failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
            return False
    except httpx.HTTPError as e:
        logger.warning("[Mailgun] Request error: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False


def _send_email_sendgrid(to_email, subject, html_content, text_content, from_name, settings) -> bool:
    from sendgrid import SendGridAPIClient
    from sendgrid.helpers.mail import Mail

    message = Mail(
        from_email=(settings.sendgrid_from_email, from_name),
        to_emails=to_email,
        subject=subject,
        html_content=html_content,
        plain_text_content=text_content or "",
    )
    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as e:
        logger.warning("[SendGrid] Send failed: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False
    return 200 <= response.status_code < 300


def send_sms(to_phone: str, message: str) -> bool:
    """SMS via the configured webhook ({to, message} JSON) or Twilio."""
    settings = get_settings()
    if settings.sms_webhook_url:
        return _send_sms_webhook(to_phone, message, settings.sms_webhook_url)
    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        logger.warning("[SMS] NOT SENT: to=%s. Set SMS_WEBHOOK_URL or TWILIO_ACCOUNT_SID/TWILIO_AUTH_TOKEN.", to_phone)
        return False
    from twilio.base.exceptions import TwilioException
    from twilio.rest import Client

    try:
        client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
        client.messages.create(body=message, from_=settings.twilio_from_phone_number, to=to_phone)
    except TwilioException as e:
        logger.warning("[SMS] Twilio send failed: to=%s error=%s", to_phone, e)
        return False
    return True


def _send_sms_webhook(to_phone: str, message: str, url: str) -> bool:
    try:
        r = httpx.post(url, json={"to": to_phone, "message": message}, timeout=HTTP_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        logger.warning("[SMS] Webhook request error: to=%s error=%s: %s", to_phone, type(e).__name__, e)
        return False
    if not r.is_success:
        logger.warning("[SMS] Webhook failed: to=%s status=%s body=%s", to_phone, r.status_code, r.text[:500])
        return False
    return True


def send_verification_code(
    channel: str,
    email: str,
    phone: str,
    code: str,
    tenant: TenantContext,
    ttl_minutes: int,
) -> None:
    """Deliver a one-time code on the session's channel. Raises ChannelDispatchFailed."""
    if channel == "sms":
        message = f"Your {tenant.name} verification code is: {code}. This code will expire in {ttl_minutes} minutes."
        sent = send_sms(format_phone_to_e164(phone), message)
        target = phone
    else:
        subject = f"[{tenant.name}] Your verification code"
        text_content = f"Your verification code is: {code}\n\nThis code will expire in {ttl_minutes} minutes."
        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Verify your email</h2>
          <p>Your {tenant.name} verification code is:</p>
          <h1 style="font-size: 36px; letter-spacing: 5px; text-align: center;">{code}</h1>
          <p>This code will expire in {ttl_minutes} minutes.</p>
          <p style="color: #666; font-size: 14px;">If you didn't request this code, please ignore this email.</p>
        </div>
        """
        sent = send_email(email, subject, html_content, text_content=text_content, from_name=tenant.sender_name)
        target = email
    if not sent:
        raise ChannelDispatchFailed(f"Could not deliver the {channel} verification code to {target}.")
    logger.info("[Verification] Code dispatched via %s to %s", channel, target)
