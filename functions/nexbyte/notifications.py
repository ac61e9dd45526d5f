"""
Email templates for the notification flows triggered by form submissions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from jinja2 import Environment, PackageLoader, select_autoescape


class EmailFlow(str, Enum):
    CONTACT_WELCOME = "contact_welcome"
    HACKATHON_WELCOME = "hackathon_welcome"
    PROGRAM_APPLICATION = "program_application"
    TECHNOLOGY_SERVICE = "technology_service"
    STAFFING_INQUIRY = "staffing_inquiry"
    MARKETING_INQUIRY = "marketing_inquiry"
    TRAINING_MESSAGE = "training_message"
    CAREER_ENQUIRY = "career_enquiry"


# flow -> (template file, subject template)
FLOW_TEMPLATES: dict[EmailFlow, tuple[str, str]] = {
    EmailFlow.CONTACT_WELCOME: (
        "contact_welcome.html",
        "Welcome to {{ brand }}, {{ name }}!",
    ),
    EmailFlow.HACKATHON_WELCOME: (
        "hackathon_welcome.html",
        "Registration confirmed: {{ parent.title or 'Hackathon' }}",
    ),
    EmailFlow.PROGRAM_APPLICATION: (
        "program_application.html",
        "Application received: {{ parent.title or 'Program' }}",
    ),
    EmailFlow.TECHNOLOGY_SERVICE: (
        "technology_service.html",
        "{{ brand }}: we received your technology enquiry",
    ),
    EmailFlow.STAFFING_INQUIRY: (
        "staffing_inquiry.html",
        "{{ brand }}: staffing request received",
    ),
    EmailFlow.MARKETING_INQUIRY: (
        "marketing_inquiry.html",
        "{{ brand }}: marketing enquiry received",
    ),
    EmailFlow.TRAINING_MESSAGE: (
        "training_message.html",
        "Welcome to {{ parent.title or 'your training' }}",
    ),
    EmailFlow.CAREER_ENQUIRY: (
        "career_enquiry.html",
        "Enquiry Received: {{ submission.technology or 'Career' }} Career Guidance",
    ),
}


@dataclass(frozen=True)
class RenderedEmail:
    flow: EmailFlow
    to: str
    subject: str
    html: str


def display_name(submission: dict) -> str:
    full = " ".join(
        part for part in (submission.get("firstName"), submission.get("lastName")) if part
    )
    return full or submission.get("name") or "there"


class EmailRenderer:
    """Renders a flow's subject and HTML body from a stored submission."""

    def __init__(self, brand: str = "NexByte"):
        self.brand = brand
        self.env = Environment(
            loader=PackageLoader("nexbyte", "templates"),
            autoescape=select_autoescape(["html"], default_for_string=False),
        )

    def render(
        self, flow: EmailFlow, submission: dict, parent: Optional[dict] = None
    ) -> RenderedEmail:
        recipient = submission.get("email")
        if not recipient:
            raise ValueError(f"{flow.value} submission has no email address")
        template_name, subject_template = FLOW_TEMPLATES[flow]
        context = {
            "brand": self.brand,
            "name": display_name(submission),
            "submission": submission,
            "parent": parent or {},
        }
        subject = self.env.from_string(subject_template).render(context)
        html = self.env.get_template(template_name).render(context)
        return RenderedEmail(flow=flow, to=recipient, subject=subject.strip(), html=html)
