# app/services/email/provider.py
import logging

import anyio

from app.core.config import settings

logger = logging.getLogger(__name__)


async def send_email(to: str, subject: str, html: str):
    """Send one HTML e-mail through ``MAIL_PROVIDER``.

    Raises ``RuntimeError`` on provider failure; callers decide whether that is fatal.
    """
    provider = settings.MAIL_PROVIDER.lower()

    if provider == "resend":
        import resend

        if not settings.RESEND_API_KEY:
            raise RuntimeError("RESEND_API_KEY manquant")
        resend.api_key = settings.RESEND_API_KEY

        # Le SDK est sync; on l'exécute dans un thread
        def _send_resend():
            return resend.Emails.send({
                "from": settings.EMAIL_FROM,
                "to": [to],
                "subject": subject,
                "html": html,
            })

        resp = await anyio.to_thread.run_sync(_send_resend)
        logger.info("Resend → to=%s id=%s", to, (resp or {}).get("id"))
        return resp

    if provider == "sendgrid":
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        if not settings.SENDGRID_API_KEY:
            raise RuntimeError("SENDGRID_API_KEY manquant")

        message = Mail(
            from_email=settings.EMAIL_FROM,
            to_emails=to,
            subject=subject,
            html_content=html,
        )

        def _send_sendgrid():
            sg = SendGridAPIClient(settings.SENDGRID_API_KEY)
            return sg.send(message)

        resp = await anyio.to_thread.run_sync(_send_sendgrid)
        msg_id = resp.headers.get("X-Message-Id") or resp.headers.get("x-message-id")
        logger.info("SendGrid → status=%s message_id=%s", resp.status_code, msg_id)
        if resp.status_code >= 400:
            body = resp.body.decode() if hasattr(resp.body, "decode") else str(resp.body)
            logger.error("SendGrid error body: %s", body)
            raise RuntimeError(f"SendGrid error {resp.status_code}: {body}")
        return {"status": resp.status_code, "message_id": msg_id}

    # "console": rien ne part, on trace seulement
    logger.info("E-mail (console) → to=%s subject=%s", to, subject)
    return {"status": "logged"}
