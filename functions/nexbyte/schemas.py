"""
Pydantic schemas for the NexByte site API.

Entities are schemaless documents: request models declare the fields a
route validates or defaults, and keep anything else as submitted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    model_serializer,
)

NonEmpty = Annotated[str, Field(min_length=1)]


class Envelope(BaseModel):
    """Uniform response wrapper. Only explicitly set keys are serialized."""

    success: bool
    data: Any = None
    message: Optional[str] = None
    id: Optional[str] = None

    @model_serializer(mode="wrap")
    def _only_set_fields(self, handler):
        dumped = handler(self)
        return {k: v for k, v in dumped.items() if k in self.model_fields_set}


class Document(BaseModel):
    model_config = ConfigDict(extra="allow")


class VisibilityUpdate(BaseModel):
    isVisible: bool


class HiddenUpdate(BaseModel):
    isHidden: bool


class ReorderItem(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    order: int


class ReorderRequest(BaseModel):
    items: list[ReorderItem] = Field(
        validation_alias=AliasChoices("items", "categories", "technologies", "testimonials")
    )


ReorderPayload = Union[list[ReorderItem], ReorderRequest]


class CategoryCreate(Document):
    name: NonEmpty


class CategoryUpdate(Document):
    name: Optional[NonEmpty] = None


# --- Technologies ---


class TechnologyCreate(Document):
    name: NonEmpty
    tagline: str = ""
    intro: str = ""
    overview: str = ""
    roleOpportunities: list = Field(default_factory=list)
    expertGuidance: str = ""
    benefits: list = Field(default_factory=list)
    careerPath: list = Field(default_factory=list)
    toolsCovered: list = Field(default_factory=list)
    faqs: list = Field(default_factory=list)
    ctaText: str = ""
    sectionVisibility: dict = Field(default_factory=dict)
    order: int = 0


class TechnologyUpdate(Document):
    name: Optional[NonEmpty] = None


class SectionUpsert(BaseModel):
    title: NonEmpty
    type: str = "text"
    content: Any = ""
    order: int = 0
    sectionId: Optional[str] = None


# --- News ---


class AdCreate(Document):
    slug: NonEmpty


class AdUpdate(Document):
    slug: Optional[NonEmpty] = None


# --- Rewards ---


class AudienceMember(Document):
    name: NonEmpty
    mobile: Optional[str] = None


class RewardCreate(Document):
    title: NonEmpty
    audience: list[AudienceMember] = Field(default_factory=list)
    categoryId: Optional[str] = None


class RewardEdit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[NonEmpty] = None
    audience: Optional[list[AudienceMember]] = None
    categoryId: Optional[str] = None


class RigRequest(BaseModel):
    riggedIndex: int


class WinnerRequest(BaseModel):
    winner: dict


class RigCommand(RigRequest):
    type: Literal["rig"]


class TriggerSpinCommand(BaseModel):
    type: Literal["trigger-spin"]


class ResetSpinCommand(BaseModel):
    type: Literal["reset-spin"]


class WinnerCommand(WinnerRequest):
    type: Literal["winner"]


class EditRewardCommand(BaseModel):
    type: Literal["edit"]
    payload: RewardEdit


RewardCommand = Annotated[
    Union[
        RigCommand,
        TriggerSpinCommand,
        ResetSpinCommand,
        WinnerCommand,
        EditRewardCommand,
    ],
    Field(discriminator="type"),
]


class RewardUpdate(RootModel[RewardCommand]):
    """Tagged partial update of a reward, selected by ``type``."""


# --- Hackathons, programs, webinars ---


class HackathonCreate(Document):
    title: NonEmpty
    date: Optional[datetime] = None
    registrationOpen: bool = True


class HackathonUpdate(Document):
    title: Optional[NonEmpty] = None
    date: Optional[datetime] = None


ProgramType = Literal["training", "internship"]


class ProgramCreate(Document):
    title: NonEmpty
    type: ProgramType
    order: int = 0


class ProgramUpdate(Document):
    title: Optional[NonEmpty] = None
    type: Optional[ProgramType] = None


class WebinarCreate(Document):
    title: NonEmpty
    date: datetime
    youtubeLink: NonEmpty
    resourceLink: str = ""
    category: str = "General"
    description: str = ""


class WebinarUpdate(Document):
    title: Optional[NonEmpty] = None
    date: Optional[datetime] = None


# --- Posts ---


class PostCreate(Document):
    title: NonEmpty
    content: NonEmpty
    category: Optional[str] = None


class CommentPayload(BaseModel):
    author: Optional[str] = None
    text: NonEmpty


class CommentsToggle(BaseModel):
    commentsEnabled: bool


class LikeCommand(BaseModel):
    type: Literal["like"]


class ShareCommand(BaseModel):
    type: Literal["share"]


class CommentCommand(BaseModel):
    type: Literal["comment"]
    payload: CommentPayload


class EditPostCommand(BaseModel):
    type: Literal["edit"]
    payload: Document


class PostVisibilityCommand(BaseModel):
    type: Literal["visibility"]
    payload: VisibilityUpdate


class CommentsToggleCommand(BaseModel):
    type: Literal["comments-toggle"]
    payload: CommentsToggle


PostCommand = Annotated[
    Union[
        LikeCommand,
        ShareCommand,
        CommentCommand,
        EditPostCommand,
        PostVisibilityCommand,
        CommentsToggleCommand,
    ],
    Field(discriminator="type"),
]


class PostUpdate(RootModel[PostCommand]):
    """Tagged partial update of a post, selected by ``type``."""


class SubcategoryCreate(Document):
    name: NonEmpty
    categoryId: NonEmpty


# --- Submissions ---


class ContactSubmission(Document):
    email: NonEmpty
    firstName: NonEmpty


class NamedSubmission(Document):
    email: NonEmpty
    name: NonEmpty


class HackathonApplication(NamedSubmission):
    hackathonId: NonEmpty


class ProgramApplication(NamedSubmission):
    programId: NonEmpty


class TrainingApplication(NamedSubmission):
    trainingId: NonEmpty


# --- Testimonials, notes, todos ---


class TestimonialCreate(Document):
    name: NonEmpty
    message: NonEmpty
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class TestimonialUpdate(Document):
    name: Optional[NonEmpty] = None
    message: Optional[NonEmpty] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class NoteCreate(Document):
    title: NonEmpty
    content: str = ""
    pinned: bool = False


class NoteUpdate(Document):
    title: Optional[NonEmpty] = None
    pinned: Optional[bool] = None


class TodoCreate(Document):
    text: NonEmpty
    completed: bool = False


class TodoUpdate(Document):
    text: Optional[NonEmpty] = None
    completed: Optional[bool] = None
