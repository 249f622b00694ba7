"""
Service d'emails SendGrid pour Mes Adresses
- Notification de première publication d'une Base Adresse Locale

Envoi "best effort": un échec est journalisé, jamais propagé.
"""

import os
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Dict
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from config import EDITEUR_URL

logger = logging.getLogger("email_service")

# Configuration
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'adresse@data.gouv.fr')


def format_publication_notification(base_locale) -> Dict[str, str]:
    """
    Email envoyé aux administrateurs d'une BAL lors de sa première publication.
    Retourne {"subject": ..., "html": ...}
    """
    bal_url = f"{EDITEUR_URL}/bal/{base_locale.id}"
    date = datetime.now(timezone.utc).strftime('%d/%m/%Y')

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }}
            .container {{ max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; }}
            .header {{ background: #000091; color: white; padding: 20px; text-align: center; }}
            .header h1 {{ margin: 0; font-size: 22px; }}
            .content {{ padding: 30px; }}
            .footer {{ background: #F9FAFB; padding: 15px; text-align: center; font-size: 12px; color: #6B7280; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>Votre Base Adresse Locale est publiée</h1>
            </div>
            <div class="content">
                <p>Bonjour,</p>
                <p>
                    La Base Adresse Locale <strong>{base_locale.nom}</strong>
                    (commune {base_locale.commune}) a été publiée le {date}.
                </p>
                <p>
                    Les adresses seront intégrées à la Base Adresse Nationale dans les prochaines heures.
                    Les modifications ultérieures seront synchronisées automatiquement.
                </p>
                <p>
                    <a href="{bal_url}" style="display: inline-block; background: #000091; color: white; padding: 10px 20px; text-decoration: none; border-radius: 4px;">
                        Accéder à ma Base Adresse Locale
                    </a>
                </p>
            </div>
            <div class="footer">
                Mes Adresses - Notification automatique
            </div>
        </div>
    </body>
    </html>
    """

    return {
        "subject": "Publication de votre Base Adresse Locale",
        "html": html_content,
    }


class EmailService:
    """Service centralisé pour l'envoi d'emails"""

    def __init__(self):
        self.api_key = SENDGRID_API_KEY
        self.sender = SENDER_EMAIL

    def _send_email(self, to_emails: List[str], subject: str, html_content: str) -> bool:
        """Envoie un email via SendGrid"""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY non configurée")
            return False

        if not to_emails:
            logger.warning(f"Aucun destinataire pour: {subject}")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, "Mes Adresses"),
                to_emails=[To(email) for email in to_emails],
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email envoyé à {to_emails}: {subject}")
                return True
            else:
                logger.error(f"Erreur envoi email: {response.status_code}")
                return False

        except Exception as e:
            logger.error(f"Exception envoi email: {str(e)}")
            return False

    async def send_mail(self, email: Dict[str, str], to_emails: List[str]) -> bool:
        """Envoi asynchrone (le client SendGrid est bloquant)"""
        return await asyncio.to_thread(self._send_email, to_emails, email["subject"], email["html"])


# Instance globale
email_service = EmailService()
