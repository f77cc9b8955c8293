#!/usr/bin/env python3
"""Send a test verification code through the configured SMS or email provider and print the result.
Use to debug Mailgun/SendGrid/Twilio/webhook delivery without creating a session.
Usage: from project root, run:
  python scripts/send_test_code.py email someone@example.com
  python scripts/send_test_code.py sms 5551234567 --hub 3
"""
import argparse
import logging
import os
import sys

# Project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main():
    parser = argparse.ArgumentParser(description="Send a test verification code.")
    parser.add_argument("channel", choices=["email", "sms"])
    parser.add_argument("to", help="email address or US phone number")
    parser.add_argument("--hub", type=int, default=1, help="hub id whose branding the message uses")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    from pathlib import Path
    from smshub.config import _env_path, get_settings
    from smshub.hubs import tenant_for_hub_id
    from smshub.services.errors import ChannelDispatchFailed
    from smshub.services.notifications import send_verification_code

    s = get_settings()
    tenant = tenant_for_hub_id(args.hub)
    print(f"{tenant.name} verification code test")
    print(f"  .env path: {_env_path} (exists: {Path(_env_path).exists()})")
    print("  Config:")
    if args.channel == "email":
        print(f"    MAILGUN_DOMAIN={s.mailgun_domain or '(empty)'}")
        print(f"    MAILGUN_FROM_EMAIL={s.mailgun_from_email or '(default)'}")
        print(f"    MAILGUN_API_KEY={'set (hidden)' if s.mailgun_api_key else '(empty)'}")
        print(f"    SENDGRID_API_KEY={'set (hidden)' if s.sendgrid_api_key else '(empty)'}")
    else:
        print(f"    SMS_WEBHOOK_URL={s.sms_webhook_url or '(empty)'}")
        print(f"    TWILIO_ACCOUNT_SID={'set' if s.twilio_account_sid else '(empty)'}")
        print(f"    TWILIO_FROM_PHONE_NUMBER={s.twilio_from_phone_number or '(empty)'}")
    print(f"  Sending code via {args.channel} to: {args.to}")
    print("-" * 50)

    email = args.to if args.channel == "email" else ""
    phone = args.to if args.channel == "sms" else ""
    try:
        send_verification_code(args.channel, email, phone, "123456", tenant, s.verification_code_ttl_minutes)
    except ChannelDispatchFailed as e:
        print("-" * 50)
        print(f"Result: FAILED - {e.message}")
        print("  See the [Email]/[Mailgun]/[SMS] lines above for the cause, fix .env and run again.")
        return 1
    print("-" * 50)
    print("Result: SUCCESS - the provider accepted the message.")
    print("  If it does not arrive: check spam, sandbox authorized recipients, or the SMS sender's logs.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
