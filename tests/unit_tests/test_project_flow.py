"""Tests for projects, phases, subtasks with images and phase comments."""

import pytest

from projectflow_api.workspace.enums import ProjectStatus
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.enums import WorkItemStatus
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import ImageStoreError
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.orchestrator import project_flow
from tests.fixtures.service_fixtures import IMAGE_BASE_URL
from tests.fixtures.workspace_fixtures import COMPANY
from tests.fixtures.workspace_fixtures import WEST_BAY


def project_data(team_lead, team_member, **overrides):
    data = {
        "project_name": "Website",
        "client_name": "Globex",
        "project_description": "Company website relaunch",
        "start_date": "2026-04-01",
        "end_date": "2026-06-30",
        "project_lead": team_lead.team_member_id,
        "team_members": [team_member.team_member_id],
    }
    data.update(overrides)
    return data


@pytest.fixture
async def project(store, owner_principal, team_lead, team_member):
    return await project_flow.create_project(store, owner_principal, project_data(team_lead, team_member))


@pytest.fixture
async def phase(store, owner_principal, project):
    return await project_flow.add_phase(
        store, owner_principal, "Design", "2026-04-30", "Wireframes", project_id=project.project_id
    )


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_create(self, store, project, team_lead, team_member):
        assert project.project_id == "WB-Pr-1"
        assert project.project_status == ProjectStatus.ONGOING
        assert project.project_lead == team_lead.team_member_id
        assert project.team_members == [team_member.team_member_id]
        assert project.version == 1
        assert store.activities.rows[-1]["description"] == "Created project Website"

    @pytest.mark.asyncio
    async def test_identifiers_increase(self, store, owner_principal, project, team_lead, team_member):
        second = await project_flow.create_project(
            store, owner_principal, project_data(team_lead, team_member, project_name="Mobile app")
        )

        assert second.project_id == "WB-Pr-2"

    @pytest.mark.asyncio
    async def test_members_required(self, store, owner_principal, team_lead, team_member):
        with pytest.raises(ValidationFailed, match="Team members are required"):
            await project_flow.create_project(
                store, owner_principal, project_data(team_lead, team_member, team_members=[])
            )

    @pytest.mark.asyncio
    async def test_lead_must_be_team_lead(self, store, owner_principal, team_lead, team_member):
        with pytest.raises(NotFound, match="Team Lead not found or invalid"):
            await project_flow.create_project(
                store, owner_principal, project_data(team_lead, team_member, project_lead=team_member.team_member_id)
            )

    @pytest.mark.asyncio
    async def test_members_must_be_team_members(self, store, owner_principal, team_lead, team_member):
        with pytest.raises(ValidationFailed, match="One or more team members are invalid"):
            await project_flow.create_project(
                store,
                owner_principal,
                project_data(team_lead, team_member, team_members=[team_member.team_member_id, "WB-404"]),
            )

    @pytest.mark.asyncio
    async def test_deleted_status_not_accepted(self, store, owner_principal, team_lead, team_member):
        with pytest.raises(ValidationFailed, match="Invalid project status"):
            await project_flow.create_project(
                store, owner_principal, project_data(team_lead, team_member, project_status="deleted")
            )

    @pytest.mark.asyncio
    async def test_unknown_team(self, store, owner_principal, team_lead, team_member):
        with pytest.raises(NotFound, match="Team not found"):
            await project_flow.create_project(
                store, owner_principal, project_data(team_lead, team_member, team_name="Ghosts")
            )

    @pytest.mark.asyncio
    async def test_team_lead_cannot_create(self, store, workspace, team_lead, team_member):
        with pytest.raises(Forbidden):
            await project_flow.create_project(
                store, workspace.principal(team_lead), project_data(team_lead, team_member)
            )


class TestProjectQueries:
    @pytest.mark.asyncio
    async def test_get_and_list(self, store, owner_principal, project):
        fetched = await project_flow.get_project(store, owner_principal, project.project_id)
        listed = await project_flow.list_projects(store, owner_principal)

        assert fetched.project_name == "Website"
        assert [p.project_id for p in listed] == [project.project_id]

    @pytest.mark.asyncio
    async def test_missing_project(self, store, owner_principal):
        with pytest.raises(NotFound, match="Project not found"):
            await project_flow.get_project(store, owner_principal, "WB-Pr-9")

    @pytest.mark.asyncio
    async def test_projects_for_member(self, store, workspace, owner_principal, project, team_member):
        mine = await project_flow.projects_for_member(store, workspace.principal(team_member), team_member.team_member_id)

        assert [p.project_id for p in mine] == [project.project_id]

        await project_flow.soft_delete_project(store, owner_principal, project.project_id)
        assert await project_flow.projects_for_member(store, owner_principal, team_member.team_member_id) == []

    @pytest.mark.asyncio
    async def test_member_cannot_ask_about_others(self, store, workspace, project, team_member, team_lead):
        with pytest.raises(Forbidden, match="Unauthorized access"):
            await project_flow.projects_for_member(store, workspace.principal(team_member), team_lead.team_member_id)


class TestUpdateProject:
    @pytest.mark.asyncio
    async def test_membership_changes(self, store, workspace, owner_principal, project, team_member):
        newcomer = workspace.employee(Role.TEAM_MEMBER, name="New Member")

        updated = await project_flow.update_project(
            store,
            owner_principal,
            project.project_id,
            {"add_members": [newcomer.team_member_id], "remove_members": [team_member.team_member_id]},
        )

        assert updated.team_members == [newcomer.team_member_id]
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_late_completion_keeps_planned_date(self, store, owner_principal, project):
        updated = await project_flow.update_project(
            store, owner_principal, project.project_id, {"project_status": "completed", "end_date": "2026-07-15"}
        )

        assert updated.project_status == ProjectStatus.COMPLETED
        assert updated.end_date == "2026-07-15"
        assert updated.original_end_date == "2026-06-30"
        assert updated.completion_note == (
            "Original planned completion date was 2026-06-30, but project was completed on 2026-07-15."
        )

    @pytest.mark.asyncio
    async def test_deleted_project_cannot_be_edited(self, store, owner_principal, project):
        await project_flow.soft_delete_project(store, owner_principal, project.project_id)

        with pytest.raises(Conflict, match="Deleted projects cannot be edited"):
            await project_flow.update_project(store, owner_principal, project.project_id, {"client_name": "Initech"})

    @pytest.mark.asyncio
    async def test_concurrent_save_is_retried(self, store, owner_principal, project, monkeypatch):
        real_save = store.projects.save
        calls = []

        async def racing_save(document, expected_version):
            calls.append(expected_version)
            if len(calls) == 1:
                # another writer gets there first
                store.projects._find(project_id=project.project_id)["version"] += 1
            return await real_save(document, expected_version)

        monkeypatch.setattr(store.projects, "save", racing_save)

        updated = await project_flow.update_project(
            store, owner_principal, project.project_id, {"client_name": "Initech"}
        )

        assert calls == [1, 2]
        assert updated.client_name == "Initech"
        assert updated.version == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(self, store, owner_principal, project, monkeypatch):
        async def always_stale(document, expected_version):
            return None

        monkeypatch.setattr(store.projects, "save", always_stale)

        with pytest.raises(Conflict, match="modified by another request"):
            await project_flow.update_project(store, owner_principal, project.project_id, {"client_name": "Initech"})


class TestDeleteProject:
    @pytest.mark.asyncio
    async def test_soft_delete(self, store, owner_principal, project):
        deleted = await project_flow.soft_delete_project(store, owner_principal, project.project_id)

        assert deleted.project_status == ProjectStatus.DELETED
        assert deleted.deleted_at is not None
        assert store.activities.rows[-1]["action"] == "delete"

    @pytest.mark.asyncio
    async def test_permanent_delete_removes_images(self, store, owner_principal, image_store, mock_settings, phase):
        await project_flow.add_subtask(
            store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"a", b"b"]
        )

        outcome = await project_flow.permanently_delete_project(store, owner_principal, "WB-Pr-1", image_store)

        assert outcome == {"deleted_images": 2, "deleted_count": 2, "failed_count": 0}
        assert store.projects.rows == []
        assert image_store.blobs == {}
        assert store.activities.rows[-1]["action"] == "permanently_delete"

    @pytest.mark.asyncio
    async def test_permanent_delete_missing(self, store, owner_principal, image_store):
        with pytest.raises(NotFound):
            await project_flow.permanently_delete_project(store, owner_principal, "WB-Pr-9", image_store)


class TestPhases:
    @pytest.mark.asyncio
    async def test_phase_numbers_run_across_projects(self, store, owner_principal, project, phase, team_lead, team_member):
        other = await project_flow.create_project(
            store, owner_principal, project_data(team_lead, team_member, project_name="Mobile app")
        )

        second = await project_flow.add_phase(store, owner_principal, "Build", "2026-05-31", project_id=other.project_id)

        assert phase.phase_id == "WB-ph-1"
        assert phase.status == WorkItemStatus.PENDING
        assert second.phase_id == "WB-ph-2"

    @pytest.mark.asyncio
    async def test_add_phase_by_project_name(self, store, owner_principal, project):
        added = await project_flow.add_phase(store, owner_principal, "Launch", "2026-06-30", project_name="Website")

        phases = await project_flow.list_phases(store, owner_principal, project.project_id)
        assert [p.phase_id for p in phases] == [added.phase_id]

    @pytest.mark.asyncio
    async def test_team_lead_manages_structure(self, store, workspace, project, team_lead):
        added = await project_flow.add_phase(
            store, workspace.principal(team_lead), "QA", "2026-06-15", project_id=project.project_id
        )

        assert added.title == "QA"

    @pytest.mark.asyncio
    async def test_team_member_updates_status_by_title(self, store, workspace, project, phase, team_member):
        updated = await project_flow.update_phase_status(
            store, workspace.principal(team_member), "In Progress", phase_title="Design", project_id=project.project_id
        )

        assert updated.status == WorkItemStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_team_member_cannot_add_phase(self, store, workspace, project, team_member):
        with pytest.raises(Forbidden):
            await project_flow.add_phase(
                store, workspace.principal(team_member), "QA", "2026-06-15", project_id=project.project_id
            )

    @pytest.mark.asyncio
    async def test_delete_phase_cleans_images(self, store, owner_principal, image_store, mock_settings, project, phase):
        await project_flow.add_subtask(
            store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"a"]
        )

        removed = await project_flow.delete_phase(
            store, owner_principal, image_store, phase_id=phase.phase_id, project_id=project.project_id
        )

        assert removed.phase_id == phase.phase_id
        assert len(image_store.deleted) == 1
        assert await project_flow.list_phases(store, owner_principal, project.project_id) == []

    @pytest.mark.asyncio
    async def test_delete_phase_needs_identifiers(self, store, owner_principal, image_store):
        with pytest.raises(ValidationFailed, match="Project ID or Project Name is required"):
            await project_flow.delete_phase(store, owner_principal, image_store, phase_id="WB-ph-1")
        with pytest.raises(ValidationFailed, match="Phase ID or Title is required"):
            await project_flow.delete_phase(store, owner_principal, image_store, project_id="WB-Pr-1")


class TestSubtasks:
    @pytest.mark.asyncio
    async def test_add_subtask_uploads_images(self, store, owner_principal, image_store, mock_settings, phase):
        subtask = await project_flow.add_subtask(
            store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"png-bytes"]
        )

        assert subtask.subtask_id == f"{phase.phase_id}-1"
        assert subtask.assigned_team == "unassigned"
        assert subtask.images == [f"{IMAGE_BASE_URL}/image-1.jpg"]
        assert subtask.status == WorkItemStatus.PENDING

    @pytest.mark.asyncio
    async def test_too_many_images(self, store, owner_principal, image_store, mock_settings, phase):
        with pytest.raises(ValidationFailed, match="at most 2 images"):
            await project_flow.add_subtask(
                store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"1", b"2", b"3"]
            )
        assert image_store.blobs == {}

    @pytest.mark.asyncio
    async def test_failed_upload_adds_nothing(self, store, owner_principal, image_store, mock_settings, project, phase):
        image_store.fail_uploads = True

        with pytest.raises(ImageStoreError):
            await project_flow.add_subtask(
                store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"1"]
            )
        assert await project_flow.list_subtasks(store, owner_principal, project.project_id) == []

    @pytest.mark.asyncio
    async def test_failed_save_removes_uploaded_images(
        self, store, owner_principal, image_store, mock_settings, phase, monkeypatch
    ):
        async def always_stale(document, expected_version):
            return None

        monkeypatch.setattr(store.projects, "save", always_stale)

        with pytest.raises(Conflict):
            await project_flow.add_subtask(
                store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"1"]
            )
        assert image_store.blobs == {}
        assert len(image_store.deleted) == 1

    @pytest.mark.asyncio
    async def test_unknown_assigned_member(self, store, owner_principal, image_store, mock_settings, phase):
        with pytest.raises(NotFound, match="Assigned member not found"):
            await project_flow.add_subtask(
                store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, assigned_member="WB-404"
            )

    @pytest.mark.asyncio
    async def test_edit_replaces_dropped_images(self, store, owner_principal, image_store, mock_settings, phase):
        subtask = await project_flow.add_subtask(
            store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"1", b"2"]
        )
        keep, drop = subtask.images

        edited, outcome = await project_flow.edit_subtask(
            store,
            owner_principal,
            subtask.subtask_id,
            mock_settings,
            image_store,
            {"subtask_title": "Logo v2"},
            existing_images=[keep],
            images=[b"3"],
        )

        assert edited.subtask_title == "Logo v2"
        assert edited.images == [keep, f"{IMAGE_BASE_URL}/image-3.jpg"]
        assert outcome == {"deleted_count": 1, "failed_count": 0}
        assert image_store.deleted == [drop]

    @pytest.mark.asyncio
    async def test_edit_keeps_images_when_not_listed(self, store, owner_principal, image_store, mock_settings, phase):
        subtask = await project_flow.add_subtask(
            store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"1"]
        )

        edited, outcome = await project_flow.edit_subtask(
            store, owner_principal, subtask.subtask_id, mock_settings, image_store, {"description": "Vector logo"}
        )

        assert edited.images == subtask.images
        assert edited.description == "Vector logo"
        assert outcome["deleted_count"] == 0

    @pytest.mark.asyncio
    async def test_edit_without_changes(self, store, owner_principal, image_store, mock_settings, phase):
        subtask = await project_flow.add_subtask(store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store)

        with pytest.raises(ValidationFailed, match="No valid update fields provided"):
            await project_flow.edit_subtask(store, owner_principal, subtask.subtask_id, mock_settings, image_store, {})

    @pytest.mark.asyncio
    async def test_status_and_delete(self, store, workspace, owner_principal, image_store, mock_settings, project, phase, team_member):
        subtask = await project_flow.add_subtask(
            store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store, images=[b"1"]
        )

        updated = await project_flow.update_subtask_status(
            store, workspace.principal(team_member), subtask.subtask_id, "Completed"
        )
        assert updated.status == WorkItemStatus.COMPLETED

        outcome = await project_flow.delete_subtask(store, owner_principal, subtask.subtask_id, image_store)
        assert outcome == {"deleted_count": 1, "failed_count": 0}
        assert await project_flow.list_subtasks(store, owner_principal, project.project_id) == []

    @pytest.mark.asyncio
    async def test_list_subtasks_tags_phase(self, store, owner_principal, image_store, mock_settings, project, phase):
        await project_flow.add_subtask(store, owner_principal, phase.phase_id, "Logo", mock_settings, image_store)

        [listed] = await project_flow.list_subtasks(store, owner_principal, project.project_id)

        assert listed["phase_id"] == phase.phase_id
        assert listed["phase_title"] == "Design"
        assert listed["subtask_title"] == "Logo"

    @pytest.mark.asyncio
    async def test_missing_subtask(self, store, owner_principal):
        with pytest.raises(NotFound, match="Subtask not found"):
            await project_flow.update_subtask_status(store, owner_principal, "WB-ph-1-9", "Completed")


class TestComments:
    @pytest.mark.asyncio
    async def test_comment_records_author(self, store, workspace, project, phase, team_member):
        comment = await project_flow.add_comment(
            store, workspace.principal(team_member), project.project_id, phase.phase_id, "Looks good"
        )

        assert comment.author_id == team_member.team_member_id
        assert comment.author_name == "Tom Member"
        comments = await project_flow.list_comments(
            store, workspace.principal(team_member), project.project_id, phase.phase_id
        )
        assert [c.text for c in comments] == ["Looks good"]

    @pytest.mark.asyncio
    async def test_comment_on_missing_phase(self, store, owner_principal, project):
        with pytest.raises(NotFound, match="Phase not found"):
            await project_flow.add_comment(store, owner_principal, project.project_id, "WB-ph-9", "Hi")


class TestIdentifiersAfterDeletion:
    @pytest.mark.asyncio
    async def test_soft_deleted_number_is_not_reused(self, store, owner_principal, project, team_lead, team_member):
        await project_flow.soft_delete_project(store, owner_principal, project.project_id)

        second = await project_flow.create_project(
            store, owner_principal, project_data(team_lead, team_member, project_name="Mobile app")
        )

        assert second.project_id == "WB-Pr-2"

    @pytest.mark.asyncio
    async def test_permanently_deleted_number_is_not_reused(
        self, store, owner_principal, image_store, project, team_lead, team_member
    ):
        await project_flow.soft_delete_project(store, owner_principal, project.project_id)
        await project_flow.permanently_delete_project(store, owner_principal, project.project_id, image_store)

        second = await project_flow.create_project(
            store, owner_principal, project_data(team_lead, team_member, project_name="Mobile app")
        )

        assert second.project_id == "WB-Pr-2"


class TestTenantsWithCollidingInitials:
    """'Web Blaze' and 'West Bay' both number their projects WB-Pr-<n>."""

    @pytest.fixture
    async def west_bay_project(self, store, workspace):
        owner = workspace.owner(WEST_BAY)
        lead = workspace.employee(Role.TEAM_LEAD, name="Wes Lead", company_name=WEST_BAY)
        member = workspace.employee(Role.TEAM_MEMBER, name="Wendy Member", company_name=WEST_BAY)
        return await project_flow.create_project(
            store, workspace.principal(owner), project_data(lead, member, project_name="Harbour")
        )

    @pytest.mark.asyncio
    async def test_same_identifier_in_both_tenants(self, project, west_bay_project):
        assert project.project_id == west_bay_project.project_id == "WB-Pr-1"
        assert west_bay_project.company_name == WEST_BAY

    @pytest.mark.asyncio
    async def test_get_and_update_stay_in_tenant(self, store, owner_principal, project, west_bay_project):
        fetched = await project_flow.get_project(store, owner_principal, "WB-Pr-1")
        await project_flow.update_project(store, owner_principal, "WB-Pr-1", {"client_name": "Initech"})

        assert fetched.project_name == "Website"
        other = await store.projects.get(WEST_BAY, "WB-Pr-1")
        assert other["project_name"] == "Harbour"
        assert other["client_name"] == "Globex"
        assert other["version"] == 1

    @pytest.mark.asyncio
    async def test_deletes_stay_in_tenant(self, store, owner_principal, image_store, project, west_bay_project):
        await project_flow.soft_delete_project(store, owner_principal, "WB-Pr-1")
        assert (await store.projects.get(WEST_BAY, "WB-Pr-1"))["project_status"] == "ongoing"

        await project_flow.permanently_delete_project(store, owner_principal, "WB-Pr-1", image_store)

        assert await store.projects.get(COMPANY, "WB-Pr-1") is None
        assert (await store.projects.get(WEST_BAY, "WB-Pr-1"))["project_name"] == "Harbour"

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_reach_project(self, store, workspace, project):
        outsider = workspace.principal(workspace.owner(WEST_BAY))

        with pytest.raises(NotFound):
            await project_flow.get_project(store, outsider, "WB-Pr-1")
        with pytest.raises(NotFound):
            await project_flow.soft_delete_project(store, outsider, "WB-Pr-1")
        assert (await store.projects.get(COMPANY, "WB-Pr-1"))["project_status"] == "ongoing"
