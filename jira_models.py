#!/usr/bin/env python3

"""
Jira Models - Typed payloads for the Jira REST API

Every response the client decodes goes through one of these models so a
shape mismatch surfaces as a single DecodeError at the transport boundary
instead of a KeyError deep inside the UI.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

T = TypeVar('T')

_MODEL_CONFIG = {
    "extra": "ignore",
    "populate_by_name": True,
}


class Named(BaseModel):
    """Any Jira object that is displayed by its name (status, priority, component)."""
    name: str

    model_config = _MODEL_CONFIG


class IssueType(Named):
    subtask: bool = False


class User(BaseModel):
    display_name: str = Field(alias='displayName')
    active: bool = True

    model_config = _MODEL_CONFIG


class ProjectRef(BaseModel):
    key: str
    name: Optional[str] = None

    model_config = _MODEL_CONFIG


class LinkFields(BaseModel):
    """Fields carried by a partial ticket view (linked issue or parent)."""
    summary: str
    status: Named
    priority: Optional[Named] = None
    issuetype: IssueType

    model_config = _MODEL_CONFIG


class LinkedIssue(BaseModel):
    """Partial ticket view: key plus summary/priority/type/status."""
    key: str
    fields: LinkFields

    model_config = _MODEL_CONFIG


class LinkType(BaseModel):
    name: Optional[str] = None
    inward: str
    outward: str

    model_config = _MODEL_CONFIG


class IssueLink(BaseModel):
    """
    Directed relationship between two tickets.

    Exactly one of inward_issue / outward_issue is populated; anything else
    is rejected at decode time.
    """
    link_type: LinkType = Field(alias='type')
    inward_issue: Optional[LinkedIssue] = Field(None, alias='inwardIssue')
    outward_issue: Optional[LinkedIssue] = Field(None, alias='outwardIssue')

    model_config = _MODEL_CONFIG

    @model_validator(mode='after')
    def _exactly_one_direction(self):
        if (self.inward_issue is None) == (self.outward_issue is None):
            raise ValueError("issue link must have exactly one of inwardIssue/outwardIssue")
        return self

    @property
    def linked_issue(self) -> LinkedIssue:
        return self.outward_issue if self.outward_issue is not None else self.inward_issue

    @property
    def relation(self) -> str:
        """Human-readable label for the populated direction."""
        if self.outward_issue is not None:
            return self.link_type.outward
        return self.link_type.inward


class Comment(BaseModel):
    id: Optional[str] = None
    author: Optional[User] = None
    update_author: Optional[User] = Field(None, alias='updateAuthor')
    body: Optional[Any] = None  # ADF document
    rendered_body: Optional[str] = Field(None, alias='renderedBody')
    created: str = ''
    updated: str = ''

    model_config = _MODEL_CONFIG


class CommentSet(BaseModel):
    """The complete comment collection of one ticket."""
    comments: List[Comment] = Field(default_factory=list)
    start_at: int = Field(0, alias='startAt')
    max_results: Optional[int] = Field(None, alias='maxResults')
    total: Optional[int] = None

    model_config = _MODEL_CONFIG


class RenderedFields(BaseModel):
    description: Optional[str] = None

    model_config = _MODEL_CONFIG


class TicketFields(BaseModel):
    summary: str
    status: Named
    issuetype: IssueType
    priority: Optional[Named] = None
    assignee: Optional[User] = None
    reporter: Optional[User] = None
    creator: Optional[User] = None
    labels: List[str] = Field(default_factory=list)
    components: List[Named] = Field(default_factory=list)
    parent: Optional[LinkedIssue] = None
    issuelinks: List[IssueLink] = Field(default_factory=list)
    project: Optional[ProjectRef] = None
    updated: Optional[str] = None
    comment: Optional[CommentSet] = None  # None means never fetched

    model_config = _MODEL_CONFIG


class Ticket(BaseModel):
    key: str
    fields: TicketFields
    rendered_fields: Optional[RenderedFields] = Field(None, alias='renderedFields')

    model_config = _MODEL_CONFIG

    @property
    def comments(self) -> Optional[CommentSet]:
        return self.fields.comment

    def to_record(self) -> Dict[str, Any]:
        """
        Serialize for the store.

        An unfetched comment collection is left out entirely so merging the
        record never wipes comments that were cached earlier.
        """
        record = self.model_dump(mode='json', by_alias=True)
        if self.fields.comment is None:
            record['fields'].pop('comment', None)
        return record


class Project(BaseModel):
    key: str
    id: Optional[str] = None
    name: Optional[str] = None

    model_config = _MODEL_CONFIG


class PagedCollection(BaseModel, Generic[T]):
    """
    Pagination envelope used by Jira's list resources.

    is_last=True never carries a next_page; the reverse does not hold, and
    callers treat a missing next_page as the authoritative stop.
    """
    is_last: bool = Field(False, alias='isLast')
    max_results: int = Field(0, alias='maxResults')
    next_page: Optional[str] = Field(None, alias='nextPage')
    start_at: int = Field(0, alias='startAt')
    total: int = 0
    values: List[T] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    @model_validator(mode='after')
    def _last_page_has_no_pointer(self):
        if self.is_last and self.next_page is not None:
            raise ValueError("isLast page must not carry nextPage")
        return self


class SearchPage(BaseModel):
    """One page of /search/jql, which paginates by token instead of URL."""
    issues: List[Ticket] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias='nextPageToken')
    is_last: Optional[bool] = Field(None, alias='isLast')

    model_config = _MODEL_CONFIG

    def to_paged(self, next_url: Optional[str]) -> PagedCollection[Ticket]:
        """Wrap into the common envelope; next_url is built from the token by the caller."""
        next_page = next_url if self.next_page_token else None
        return PagedCollection[Ticket](
            is_last=next_page is None,
            max_results=len(self.issues),
            next_page=next_page,
            total=len(self.issues),
            values=self.issues,
        )


class FieldSchema(BaseModel):
    type: Optional[str] = None
    custom: Optional[str] = None
    custom_id: Optional[int] = Field(None, alias='customId')
    items: Optional[str] = None

    model_config = _MODEL_CONFIG


class AllowedValue(BaseModel):
    """One selectable option for a dynamic field; unknown keys kept as metadata."""
    id: Optional[str] = None
    value: Optional[str] = None
    name: Optional[str] = None

    model_config = {
        "extra": "allow",
        "populate_by_name": True,
    }

    @property
    def label(self) -> str:
        return self.value or self.name or self.id or ''

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class TransitionField(BaseModel):
    required: bool = False
    name: Optional[str] = None
    field_schema: FieldSchema = Field(default_factory=FieldSchema, alias='schema')
    allowed_values: Optional[List[AllowedValue]] = Field(None, alias='allowedValues')

    model_config = _MODEL_CONFIG


class Transition(BaseModel):
    id: str
    name: Optional[str] = None
    has_screen: Optional[bool] = Field(None, alias='hasScreen')
    to: Optional[Named] = None
    fields: Optional[Dict[str, TransitionField]] = None

    model_config = _MODEL_CONFIG


class TransitionsResponse(BaseModel):
    transitions: List[Transition] = Field(default_factory=list)

    model_config = _MODEL_CONFIG
