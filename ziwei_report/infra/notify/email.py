# ============================================================
# Module : ziwei_report/infra/notify/email.py
# Objet  : Client d'envoi d'e-mails transactionnels (API Resend).
# Contexte : Appelé uniquement après une génération réussie; tout échec est non fatal
#            pour le rapport (NotificationError, journalisée par l'appelant).
# ============================================================

from __future__ import annotations

import html

import httpx
import structlog

from ziwei_report.domain.entities import ReportRecord
from ziwei_report.domain.errors import NotificationError


class EmailNotifier:
    """Envoie le lien du rapport terminé via l'API HTTP Resend.

    Sans clé API, le client est désactivé et chaque envoi lève `NotificationError`.
    """

    def __init__(
        self,
        api_key: str | None,
        sender: str,
        public_base_url: str,
        api_url: str = "https://api.resend.com",
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.public_base_url = public_base_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self._log = structlog.get_logger(__name__).bind(component="email_notifier")
        if client is not None:
            self._client = client
        elif api_key:
            timeout = httpx.Timeout(connect=5.0, read=10.0, write=10.0, pool=5.0)
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {api_key}"}, timeout=timeout
            )
        else:
            self._client = None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def report_url(self, report_id: str) -> str:
        return f"{self.public_base_url}/result/{report_id}"

    def render(self, record: ReportRecord) -> tuple[str, str]:
        """Sujet et corps HTML du message (l'identité centrale est échappée)."""
        subject = "Your Zi Wei Dou Shu reading is ready"
        identity = html.escape(record.core_identity or "")
        link = html.escape(self.report_url(record.id), quote=True)
        body = (
            "<h1>Your destiny reading is ready</h1>"
            f"<p><em>{identity}</em></p>"
            f'<p><a href="{link}">Open your full report</a></p>'
            "<p>You can view this report again for free for 7 days.</p>"
        )
        return subject, body

    def send_report(self, record: ReportRecord) -> str:
        """Envoie le message pour `record` et retourne l'identifiant Resend.

        Raises:
            NotificationError: client désactivé, erreur réseau ou statut non 2xx.
        """
        if self._client is None:
            raise NotificationError("email delivery is not configured")
        subject, body = self.render(record)
        payload = {"from": self.sender, "to": [record.email], "subject": subject, "html": body}
        try:
            resp = self._client.post(f"{self.api_url}/emails", json=payload)
        except httpx.HTTPError as err:
            raise NotificationError(f"email transport error: {type(err).__name__}") from err
        if resp.status_code >= 400:
            raise NotificationError(
                "email provider rejected the message", {"status_code": resp.status_code}
            )
        try:
            data = resp.json()
        except ValueError:
            # Accepté par le fournisseur: un corps illisible ne doit pas provoquer un renvoi
            data = None
        message_id = str(data.get("id", "")) if isinstance(data, dict) else ""
        # Jamais l'adresse ni le corps dans les logs
        self._log.info("report_email_sent", report_id=record.id, message_id=message_id)
        return message_id
