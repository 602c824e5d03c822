"""Template rendering for notification text using Jinja2.

Templates live in the job_watch.notifications/templates package directory.
Output is plain text, so autoescaping is off; undefined variables are errors.
"""

import logging
from typing import Sequence, Tuple

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from .models import AlertMessage, NotificationTemplateError

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders webhook and digest text from packaged templates."""

    def __init__(
        self,
        template_dir: str = "templates",
        alert_template: str = "webhook_alert.txt.j2",
        digest_subject_template: str = "digest_subject.txt.j2",
        digest_body_template: str = "digest_body.txt.j2",
    ):
        self.alert_template_name = alert_template
        self.digest_subject_template_name = digest_subject_template
        self.digest_body_template_name = digest_body_template

        self.env = Environment(
            loader=PackageLoader("job_watch.notifications", template_dir),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            keep_trailing_newline=False,
        )

    def render_alert(self, alert: AlertMessage) -> str:
        """Render the per-alert webhook text.

        Raises:
            NotificationTemplateError: If template rendering fails
        """
        return self._render(self.alert_template_name, alert=alert).strip()

    def render_digest(self, alerts: Sequence[AlertMessage], prefix: str) -> Tuple[str, str]:
        """Render the (subject, body) of the fallback email digest.

        Raises:
            NotificationTemplateError: If template rendering fails
        """
        subject = self._render(
            self.digest_subject_template_name, alerts=alerts, prefix=prefix
        )
        # Subject must be a single line
        subject = " ".join(subject.split())
        body = self._render(self.digest_body_template_name, alerts=alerts).strip()
        return subject, body

    def _render(self, template_name: str, **context) -> str:
        try:
            return self.env.get_template(template_name).render(**context)
        except TemplateError as e:
            error_msg = f"Template rendering failed for {template_name}: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e
