"""
Public form submissions that trigger a confirmation email.

Every kind follows the same flow: validate, store with ``submittedAt``,
render the kind's email, record it in the outbox and hand it off for
delivery after the response. A kind that references a hackathon or program
copies the parent's title onto the submission, since the email needs the
parent's content.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel

from nexbyte.conventions import client_fields, delete_or_404, get_or_404, now, ok
from nexbyte.dependencies import get_notifier, get_store
from nexbyte.notifications import EmailFlow
from nexbyte.outbox import EmailNotifier
from nexbyte.schemas import (
    ContactSubmission,
    Envelope,
    HackathonApplication,
    NamedSubmission,
    ProgramApplication,
    TrainingApplication,
)
from nexbyte.store import DocumentStore

logger = logging.getLogger(__name__)

SUBMITTED_FIRST = [("submittedAt", -1)]


@dataclass(frozen=True)
class ParentRef:
    field: str
    collection: str
    entity: str
    title_field: str


@dataclass(frozen=True)
class SubmissionKind:
    name: str
    create_path: str
    list_path: str
    collection: str
    model: type[BaseModel]
    flow: EmailFlow
    parent: Optional[ParentRef] = None


HACKATHON_PARENT = ParentRef("hackathonId", "hackathons", "Hackathon", "hackathonTitle")
PROGRAM_PARENT = ParentRef("programId", "programs", "Program", "programTitle")
TRAINING_PARENT = ParentRef("trainingId", "programs", "Training", "trainingTitle")

SUBMISSION_KINDS = (
    SubmissionKind(
        "contact", "/contact", "/contacts", "contacts",
        ContactSubmission, EmailFlow.CONTACT_WELCOME,
    ),
    SubmissionKind(
        "hackathon application", "/applications", "/applications", "applications",
        HackathonApplication, EmailFlow.HACKATHON_WELCOME, HACKATHON_PARENT,
    ),
    SubmissionKind(
        "program application", "/program-applications", "/program-applications",
        "program_applications", ProgramApplication, EmailFlow.PROGRAM_APPLICATION,
        PROGRAM_PARENT,
    ),
    SubmissionKind(
        "technology service", "/technology-applications", "/technology-applications",
        "technology_applications", NamedSubmission, EmailFlow.TECHNOLOGY_SERVICE,
    ),
    SubmissionKind(
        "staffing", "/staffing-applications", "/staffing-applications",
        "staffing_applications", NamedSubmission, EmailFlow.STAFFING_INQUIRY,
    ),
    SubmissionKind(
        "marketing", "/marketing-applications", "/marketing-applications",
        "marketing_applications", NamedSubmission, EmailFlow.MARKETING_INQUIRY,
    ),
    SubmissionKind(
        "training", "/apply-training", "/apply-training", "training_applications",
        TrainingApplication, EmailFlow.TRAINING_MESSAGE, TRAINING_PARENT,
    ),
    SubmissionKind(
        "career enquiry", "/career/enquiry", "/career/enquiries", "career_enquiries",
        NamedSubmission, EmailFlow.CAREER_ENQUIRY,
    ),
)


def _load_parent(store: DocumentStore, kind: SubmissionKind, parent_id: Optional[str]):
    if kind.parent is None or not parent_id:
        return None
    return store.get(kind.parent.collection, parent_id)


def register_submission_routes(router: APIRouter, kind: SubmissionKind) -> None:
    label = kind.name.capitalize()

    @router.post(kind.create_path, response_model=Envelope, status_code=201)
    def create_submission(
        payload: kind.model,
        background_tasks: BackgroundTasks,
        store: DocumentStore = Depends(get_store),
        notifier: EmailNotifier = Depends(get_notifier),
    ):
        doc = client_fields(payload)
        parent = None
        if kind.parent is not None:
            parent = get_or_404(
                store, kind.parent.collection, doc[kind.parent.field], kind.parent.entity
            )
            doc[kind.parent.title_field] = parent.get("title")
        doc["submittedAt"] = now()

        submission_id = store.insert(kind.collection, doc)
        logger.info("Stored %s %s", kind.name, submission_id)
        notifier.notify(
            kind.flow,
            {**doc, "id": submission_id},
            source_collection=kind.collection,
            parent=parent,
            background_tasks=background_tasks,
        )
        return ok(message=f"{label} submitted successfully", id=submission_id)

    @router.get(kind.list_path, response_model=Envelope)
    def list_submissions(
        parent_id: Optional[str] = Query(
            None, alias=kind.parent.field if kind.parent else "parentId"
        ),
        store: DocumentStore = Depends(get_store),
    ):
        where = None
        if kind.parent is not None and parent_id:
            where = {kind.parent.field: parent_id}
        return ok(data=store.find(kind.collection, where, sort=SUBMITTED_FIRST))

    @router.delete(kind.list_path + "/{submission_id}", response_model=Envelope)
    def delete_submission(submission_id: str, store: DocumentStore = Depends(get_store)):
        delete_or_404(store, kind.collection, submission_id, label)
        return ok(message=f"{label} deleted")

    @router.post(kind.list_path + "/{submission_id}/resend-email", response_model=Envelope)
    def resend_submission_email(
        submission_id: str,
        background_tasks: BackgroundTasks,
        store: DocumentStore = Depends(get_store),
        notifier: EmailNotifier = Depends(get_notifier),
    ):
        submission = get_or_404(store, kind.collection, submission_id, label)
        parent_id = submission.get(kind.parent.field) if kind.parent else None
        outbox_id = notifier.notify(
            kind.flow,
            submission,
            source_collection=kind.collection,
            parent=_load_parent(store, kind, parent_id),
            background_tasks=background_tasks,
        )
        if outbox_id is None:
            raise HTTPException(status_code=500, detail="Email could not be prepared")
        return ok(message="Email resent", id=outbox_id)


router = APIRouter(tags=["submissions"])
for _kind in SUBMISSION_KINDS:
    register_submission_routes(router, _kind)
