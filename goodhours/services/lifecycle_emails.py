from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Dict, List, Tuple

from jinja2 import TemplateError

from goodhours.core.settings import settings
from goodhours.services import email as email_service
from goodhours.services.audit import log_email_send
from goodhours.utils.datetime import utc_now

logger = logging.getLogger("goodhours.lifecycle_email")


class LifecycleEmailEvent(str, Enum):
    HOUR_APPROVED = "hour_approved"
    HOUR_REMOVED = "hour_removed"
    STUDENT_LEFT_CLASSROOM = "student_left_classroom"
    ORG_APPROVAL_REQUESTED = "org_approval_requested"
    ORG_REQUEST_APPROVED = "org_request_approved"


SUBJECTS: Dict[LifecycleEmailEvent, str] = {
    LifecycleEmailEvent.HOUR_APPROVED: "Your service hours were approved",
    LifecycleEmailEvent.HOUR_REMOVED: "Service hours removed from your record",
    LifecycleEmailEvent.STUDENT_LEFT_CLASSROOM: "A student left your classroom",
    LifecycleEmailEvent.ORG_APPROVAL_REQUESTED: "New organization approval request",
    LifecycleEmailEvent.ORG_REQUEST_APPROVED: "Your organization was approved",
}

ACTION_PATHS: Dict[LifecycleEmailEvent, str] = {
    LifecycleEmailEvent.HOUR_APPROVED: "/student/dashboard",
    LifecycleEmailEvent.HOUR_REMOVED: "/student/dashboard",
    LifecycleEmailEvent.STUDENT_LEFT_CLASSROOM: "/school/groups",
    LifecycleEmailEvent.ORG_APPROVAL_REQUESTED: "/school/dashboard",
    LifecycleEmailEvent.ORG_REQUEST_APPROVED: "/organization/dashboard",
}


def _body_lines(event: LifecycleEmailEvent, context: Dict[str, Any]) -> List[str]:
    if event == LifecycleEmailEvent.HOUR_APPROVED:
        return [f"{context.get('hours')} hours for \"{context.get('opportunity_title')}\" have been approved and added to your total."]
    if event == LifecycleEmailEvent.HOUR_REMOVED:
        lines = [f"{context.get('hours')} hours for \"{context.get('opportunity_title')}\" were removed by your school."]
        if context.get('reason'):
            lines.append(f"Reason: {context['reason']}")
        return lines
    if event == LifecycleEmailEvent.STUDENT_LEFT_CLASSROOM:
        return [f"{context.get('student_name')} has left \"{context.get('classroom_name')}\"."]
    if event == LifecycleEmailEvent.ORG_APPROVAL_REQUESTED:
        return [f"{context.get('organization_name')} has asked to be approved for your students."]
    return [f"{context.get('school_name')} approved your organization. Its students can now see your opportunities."]


def render_lifecycle_email(event: LifecycleEmailEvent, context: Dict[str, Any]) -> Tuple[str, str, str]:
    """Render HTML & plain text plus subject for a lifecycle event."""
    subject = SUBJECTS[event]
    lines = _body_lines(event, context)
    action_url = f"{settings.app_url}{ACTION_PATHS[event]}"

    html = None
    try:
        template = email_service.get_email_template_env().get_template("notice.html")
        html = template.render(
            subject=subject,
            recipient_name=context.get('recipient_name'),
            lines=lines,
            action_url=action_url,
        )
    except TemplateError as e:
        logger.error(f"[lifecycle_email] Failed to render notice.html for {event.value}: {e}")

    if not html:
        # Fallback minimal HTML
        html = "\n".join([f"<h3>{subject}</h3>"] + [f"<p>{line}</p>" for line in lines]
                         + [f"<p><a href='{action_url}'>Open GoodHours</a></p>"])

    plain = "\n".join([subject] + lines + [f"Link: {action_url}"])
    return html, plain, subject


def send_lifecycle_email(event: LifecycleEmailEvent, to_email: str, context: Dict[str, Any],
                         user_id: str | None = None) -> bool:
    html, plain, subject = render_lifecycle_email(event, context)
    start = utc_now()
    success = False
    try:
        success = email_service.send_email(to_email, subject, html, plain)
    except Exception as e:
        logger.error(f"[lifecycle_email] send failed event={event.value} to={to_email}: {e}")
    finally:
        duration_ms = int((utc_now() - start).total_seconds() * 1000)
        log_email_send(user_id, to_email, purpose=event.value, sent=success)
        logger.info(f"LIFECYCLE_EMAIL_METRIC {{'event': {event.value!r}, 'to': {to_email!r}, "
                    f"'success': {success}, 'duration_ms': {duration_ms}}}")
    return success
