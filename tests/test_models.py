"""
Tests for payload models.
"""

import pytest
from pydantic import ValidationError

from jira_models import CommentSet, IssueLink, Ticket

from conftest import make_comments_data, make_linked_issue, make_ticket_data

LINK_TYPE = {'name': 'Blocks', 'inward': 'is blocked by', 'outward': 'blocks'}


class TestIssueLink:

    def test_outward_link(self):
        link = IssueLink.model_validate({'type': LINK_TYPE, 'outwardIssue': make_linked_issue('PROJ-2')})

        assert link.relation == 'blocks'
        assert link.linked_issue.key == 'PROJ-2'

    def test_inward_link(self):
        link = IssueLink.model_validate({'type': LINK_TYPE, 'inwardIssue': make_linked_issue('PROJ-3')})

        assert link.relation == 'is blocked by'
        assert link.linked_issue.key == 'PROJ-3'

    def test_neither_direction_rejected(self):
        with pytest.raises(ValidationError):
            IssueLink.model_validate({'type': LINK_TYPE})

    def test_both_directions_rejected(self):
        with pytest.raises(ValidationError):
            IssueLink.model_validate({
                'type': LINK_TYPE,
                'inwardIssue': make_linked_issue('PROJ-2'),
                'outwardIssue': make_linked_issue('PROJ-3'),
            })


class TestTicketRecord:

    def test_unfetched_comments_left_out(self):
        record = Ticket.model_validate(make_ticket_data()).to_record()

        assert 'comment' not in record['fields']
        assert record['fields']['assignee'] == {'displayName': 'Ada Lovelace', 'active': True}

    def test_fetched_comments_kept(self):
        data = make_ticket_data()
        data['fields']['comment'] = make_comments_data('hi')

        record = Ticket.model_validate(data).to_record()

        assert record['fields']['comment']['total'] == 1
        assert Ticket.model_validate(record).comments.comments[0].rendered_body == '<p>hi</p>'

    def test_unknown_fields_ignored(self):
        data = make_ticket_data()
        data['fields']['customfield_99999'] = {'anything': True}
        data['expand'] = 'renderedFields'

        assert Ticket.model_validate(data).key == 'PROJ-1'


def test_empty_comment_set():
    comments = CommentSet.model_validate({'comments': []})

    assert comments.comments == []
    assert comments.start_at == 0
