"""Tests for the Project aggregate and its embedded phases, subtasks and comments."""

from datetime import datetime
from datetime import timezone

import pytest

from projectflow_api.workspace.enums import WorkItemStatus
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.project import Project

NOW = datetime(2026, 4, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def project():
    return Project(
        project_id="WB-Pr-1",
        project_name="Website",
        client_name="Globex",
        project_description="Company website relaunch",
        start_date="2026-04-01",
        end_date="2026-06-30",
        project_lead="WB-001",
        team_members=["WB-002"],
        company_name="Web Blaze",
    )


class TestPhases:
    def test_lookup_prefers_identifier_then_title(self, project):
        design = project.add_phase("WB-ph-1", "Design", "2026-04-30")
        build = project.add_phase("WB-ph-2", "Build", "2026-05-31")

        assert project.find_phase("WB-ph-2", "Design") is build
        assert project.find_phase("WB-ph-9", "Design") is design
        assert project.find_phase(None, "Missing") is None

    def test_new_phase_is_pending(self, project):
        phase = project.add_phase("WB-ph-1", "Design", "2026-04-30", "Wireframes")

        assert phase.status == WorkItemStatus.PENDING
        assert phase.subtasks == [] and phase.comments == []

    def test_set_status(self, project):
        project.add_phase("WB-ph-1", "Design", "2026-04-30")

        assert project.set_phase_status("In Progress", phase_id="WB-ph-1").status == WorkItemStatus.IN_PROGRESS
        with pytest.raises(ValidationFailed, match="Invalid status. Must be one of: Pending, In Progress, Completed"):
            project.set_phase_status("Done", phase_id="WB-ph-1")

    def test_remove_phase_by_title(self, project):
        project.add_phase("WB-ph-1", "Design", "2026-04-30")
        project.add_phase("WB-ph-2", "Build", "2026-05-31")

        removed = project.remove_phase(title="Design")

        assert removed.phase_id == "WB-ph-1"
        assert [p.phase_id for p in project.phases] == ["WB-ph-2"]

    def test_remove_missing_phase(self, project):
        with pytest.raises(NotFound, match="Phase not found"):
            project.remove_phase("WB-ph-7")


class TestSubtasks:
    def test_subtask_ids_never_reuse_a_live_number(self, project):
        phase = project.add_phase("WB-ph-1", "Design", "2026-04-30")
        for title in ("One", "Two", "Three"):
            project.add_subtask(phase, title, NOW)

        project.remove_subtask("WB-ph-1-2")
        added = project.add_subtask(phase, "Four", NOW)

        assert added.subtask_id == "WB-ph-1-4"
        assert [s.subtask_id for s in phase.subtasks] == ["WB-ph-1-1", "WB-ph-1-3", "WB-ph-1-4"]

    def test_subtask_status_and_lookup(self, project):
        phase = project.add_phase("WB-ph-1", "Design", "2026-04-30")
        subtask = project.add_subtask(phase, "Logo", NOW, images=["https://x/a.jpg"])
        later = datetime(2026, 4, 2, tzinfo=timezone.utc)

        project.set_subtask_status(subtask.subtask_id, "Completed", later)

        found_phase, found = project.get_subtask(subtask.subtask_id)
        assert found_phase is phase
        assert found.status == WorkItemStatus.COMPLETED
        assert found.updated_at == later
        assert project.image_urls() == ["https://x/a.jpg"]

    def test_missing_subtask(self, project):
        with pytest.raises(NotFound, match="Subtask not found"):
            project.get_subtask("WB-ph-1-1")


class TestComments:
    def test_comment_keeps_author_snapshot(self, project):
        phase = project.add_phase("WB-ph-1", "Design", "2026-04-30")

        comment = project.add_comment(phase, "  Looks great ", "WB-002", "Tom Member", NOW)

        assert comment.text == "Looks great"
        assert comment.author_name == "Tom Member"
        assert phase.comments == [comment]

    def test_blank_comment_rejected(self, project):
        phase = project.add_phase("WB-ph-1", "Design", "2026-04-30")

        with pytest.raises(ValidationFailed, match="Comment text is required"):
            project.add_comment(phase, "   ", "WB-002", "Tom Member", NOW)
