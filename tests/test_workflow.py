"""Integration tests for the submission workflow: approvals, rejection, fulfillment and hooks."""

from __future__ import annotations

import logging
import re
import uuid
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select, update
from sqlmodel import col

from hrflow.config import get_settings
from hrflow.models.audit import AuditLog
from hrflow.models.enums import SubmissionStatus
from hrflow.models.submission import RequestSubmission
from hrflow.services import workflow
from hrflow.services.certificate import set_certificate_generator
from hrflow.services.hooks import TransitionEvent, set_post_commit_hooks
from hrflow.services.identity import InMemoryIdentityProvider, OrgContext, PositionInfo, UserInfo

if TYPE_CHECKING:
    from httpx import AsyncClient, Response
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.services.certificate import InMemoryCertificateGenerator
    from hrflow.services.notification import InMemoryNotifier
    from hrflow.services.storage import InMemoryFileStore

ADMIN_ID = uuid.uuid4()
REQUESTER_ID = uuid.uuid4()
LINE_MANAGER_ID = uuid.uuid4()
HR_1_ID = uuid.uuid4()
HR_2_ID = uuid.uuid4()
DEAN_ID = uuid.uuid4()
OUTSIDER_ID = uuid.uuid4()
HR_ROLE_ID = uuid.uuid4()
COMMITTEE_ROLE_ID = uuid.uuid4()
DEAN_POSITION_ID = uuid.uuid4()
FACULTY_ID = uuid.uuid4()
TEMPLATE_ID = uuid.uuid4()

ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "manager"}

REFERENCE_CODE = re.compile(r"^REQ-\d{8}-[A-Z0-9]{5}$")


def _headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-Role": "employee"}


def _user_step(name: str, user_id: uuid.UUID) -> dict:
    return {"name": name, "approvers": [{"approver_type": "user", "user_id": str(user_id)}]}


def _role_step(name: str, role_id: uuid.UUID) -> dict:
    return {"name": name, "approvers": [{"approver_type": "role", "role_id": str(role_id)}]}


def _position_step(name: str, position_id: uuid.UUID) -> dict:
    return {"name": name, "approvers": [{"approver_type": "position", "position_id": str(position_id)}]}


async def _create_type(client: AsyncClient, steps: list[dict], name: str = "Travel Approval", **extra: object) -> str:
    payload = {"name": name, "approval_steps": steps, "is_published": True, **extra}
    resp = await client.post("/request-types", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


async def _submit(client: AsyncClient, type_id: str, user_id: uuid.UUID = REQUESTER_ID) -> dict:
    resp = await client.post(
        f"/request-types/{type_id}/submissions",
        json={"answers": {"destination": "Lisbon"}},
        headers=_headers(user_id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _approve(client: AsyncClient, submission_id: str, user_id: uuid.UUID, notes: str | None = None) -> Response:
    body = {"notes": notes} if notes is not None else None
    return await client.post(f"/submissions/{submission_id}/approve", json=body, headers=_headers(user_id))


async def _reject(client: AsyncClient, submission_id: str, user_id: uuid.UUID, notes: str = "No budget") -> Response:
    return await client.post(f"/submissions/{submission_id}/reject", json={"notes": notes}, headers=_headers(user_id))


async def _fulfill(client: AsyncClient, submission_id: str, user_id: uuid.UUID, data: bytes = b"%PDF") -> Response:
    return await client.post(
        f"/submissions/{submission_id}/fulfillment",
        files={"file": ("letter.pdf", data, "application/pdf")},
        data={"notes": "Signed copy"},
        headers=_headers(user_id),
    )


@pytest.fixture(autouse=True)
def _seed_identity(identity: InMemoryIdentityProvider, file_store: InMemoryFileStore) -> None:
    identity.seed_user(UserInfo(id=REQUESTER_ID, name="Requester"), OrgContext(faculty_id=FACULTY_ID))
    for user_id, name in (
        (LINE_MANAGER_ID, "Line Manager"),
        (HR_1_ID, "HR One"),
        (HR_2_ID, "HR Two"),
        (OUTSIDER_ID, "Outsider"),
    ):
        identity.seed_user(UserInfo(id=user_id, name=name))
    identity.seed_user(UserInfo(id=DEAN_ID, name="Dean"), OrgContext(faculty_id=FACULTY_ID))
    identity.seed_role(HR_ROLE_ID, [HR_1_ID, HR_2_ID])
    identity.seed_role(COMMITTEE_ROLE_ID)
    identity.seed_position(PositionInfo(id=DEAN_POSITION_ID, name="Dean", faculty_id=FACULTY_ID), [DEAN_ID])


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def test_submit_activates_first_step(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])

    data = await _submit(async_client, type_id)

    assert REFERENCE_CODE.match(data["reference_code"])
    assert data["status"] == "pending"
    assert data["current_step_index"] == 0
    assert data["is_completed"] is False
    assert data["answers"] == {"destination": "Lisbon"}
    assert [s["name"] for s in data["approval_state"]["steps"]] == ["Manager", "HR"]
    assert len(data["actions"]) == 1
    action = data["actions"][0]
    assert action["approver_id"] == str(LINE_MANAGER_ID)
    assert action["approver_type"] == "user"
    assert action["step_index"] == 0
    assert action["status"] == "pending"


async def test_submit_to_unpublished_type_returns_422(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], is_published=False)
    resp = await async_client.post(
        f"/request-types/{type_id}/submissions", json={"answers": {}}, headers=_headers(REQUESTER_ID)
    )
    assert resp.status_code == 422


async def test_submit_to_unknown_type_returns_404(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"/request-types/{uuid.uuid4()}/submissions", json={"answers": {}}, headers=_headers(REQUESTER_ID)
    )
    assert resp.status_code == 404


async def test_submit_with_empty_first_step_leaves_nothing(
    async_client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    type_id = await _create_type(async_client, [_role_step("Committee", COMMITTEE_ROLE_ID)])

    resp = await async_client.post(
        f"/request-types/{type_id}/submissions", json={"answers": {}}, headers=_headers(REQUESTER_ID)
    )

    assert resp.status_code == 422
    assert resp.json()["error"] == "EmptyStepError"
    count = await db_session.execute(select(func.count()).select_from(RequestSubmission))
    assert count.scalar_one() == 0


async def test_requester_as_sole_approver_returns_422(
    async_client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    type_id = await _create_type(async_client, [_user_step("Self", REQUESTER_ID)])

    resp = await async_client.post(
        f"/request-types/{type_id}/submissions", json={"answers": {}}, headers=_headers(REQUESTER_ID)
    )

    assert resp.status_code == 422
    assert resp.json()["error"] == "EmptyStepError"
    count = await db_session.execute(select(func.count()).select_from(RequestSubmission))
    assert count.scalar_one() == 0


async def test_requester_in_approver_role_is_skipped(
    async_client: AsyncClient,
    identity: InMemoryIdentityProvider,
) -> None:
    identity.seed_role(COMMITTEE_ROLE_ID, [REQUESTER_ID, HR_1_ID])
    type_id = await _create_type(async_client, [_role_step("Committee", COMMITTEE_ROLE_ID)])

    data = await _submit(async_client, type_id)

    assert [a["approver_id"] for a in data["actions"]] == [str(HR_1_ID)]
    own = await _approve(async_client, data["id"], REQUESTER_ID)
    assert own.status_code == 403


async def test_zero_step_type_is_approved_immediately(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [])

    data = await _submit(async_client, type_id)

    assert data["status"] == "approved"
    assert data["is_completed"] is True
    assert data["actions"] == []
    assert data["current_step_index"] is None
    assert data["decided_at"] is not None


async def test_zero_step_type_with_fulfillment_awaits_fulfillment(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [], has_fulfillment=True)

    data = await _submit(async_client, type_id)

    assert data["status"] == "fulfillment"
    assert data["is_completed"] is False


# ---------------------------------------------------------------------------
# Sequential and parallel approval
# ---------------------------------------------------------------------------


async def test_two_step_approval_flow(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]

    first = await _approve(async_client, submission_id, LINE_MANAGER_ID, notes="Fine by me")
    assert first.status_code == 200, first.text
    assert first.json()["outcome"] == "step_complete"
    data = first.json()["submission"]
    assert data["status"] == "pending"
    assert data["current_step_index"] == 1
    assert data["approval_state"]["steps"][0]["status"] == "approved"
    step_one = [a for a in data["actions"] if a["step_index"] == 1]
    assert {a["approver_id"] for a in step_one} == {str(HR_1_ID), str(HR_2_ID)}
    assert all(a["approver_type"] == "role" and a["approver_role_id"] == str(HR_ROLE_ID) for a in step_one)
    assert data["actions"][0]["notes"] == "Fine by me"
    assert data["actions"][0]["acted_at"] is not None

    second = await _approve(async_client, submission_id, HR_1_ID)
    assert second.json()["outcome"] == "step_not_yet_complete"
    assert second.json()["submission"]["status"] == "pending"
    assert second.json()["submission"]["current_step_index"] == 1
    assert second.json()["submission"]["approval_state"]["steps"][1]["status"] == "pending"

    third = await _approve(async_client, submission_id, HR_2_ID)
    assert third.json()["outcome"] == "step_complete"
    final = third.json()["submission"]
    assert final["status"] == "approved"
    assert final["is_completed"] is True
    assert final["current_step_index"] is None
    assert final["decided_at"] is not None
    assert [s["status"] for s in final["approval_state"]["steps"]] == ["approved", "approved"]
    assert all(a["status"] == "approved" for a in final["actions"])


async def test_later_step_is_not_materialized_early(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await _approve(async_client, submission_id, HR_1_ID)

    assert resp.status_code == 403
    assert resp.json()["error"] == "NotAuthorizedError"


async def test_outsider_cannot_approve(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await _approve(async_client, submission_id, OUTSIDER_ID)

    assert resp.status_code == 403


async def test_approve_unknown_submission_returns_404(async_client: AsyncClient) -> None:
    resp = await _approve(async_client, str(uuid.uuid4()), LINE_MANAGER_ID)
    assert resp.status_code == 404


async def test_position_step_scoped_to_requester_faculty(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_position_step("Dean", DEAN_POSITION_ID)])

    data = await _submit(async_client, type_id)

    assert len(data["actions"]) == 1
    assert data["actions"][0]["approver_id"] == str(DEAN_ID)
    assert data["actions"][0]["approver_position_id"] == str(DEAN_POSITION_ID)


async def test_vacated_position_holder_can_still_decide(
    async_client: AsyncClient,
    identity: InMemoryIdentityProvider,
) -> None:
    type_id = await _create_type(async_client, [_position_step("Dean", DEAN_POSITION_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    identity.vacate_position(DEAN_POSITION_ID, DEAN_ID)

    resp = await _approve(async_client, submission_id, DEAN_ID)

    assert resp.status_code == 200
    assert resp.json()["submission"]["status"] == "approved"


async def test_failed_step_activation_rolls_back_decision(
    async_client: AsyncClient,
    identity: InMemoryIdentityProvider,
) -> None:
    type_id = await _create_type(
        async_client, [_user_step("Manager", LINE_MANAGER_ID), _position_step("Dean", DEAN_POSITION_ID)]
    )
    submission_id = (await _submit(async_client, type_id))["id"]
    identity.vacate_position(DEAN_POSITION_ID, DEAN_ID)

    resp = await _approve(async_client, submission_id, LINE_MANAGER_ID)
    assert resp.status_code == 422
    assert resp.json()["error"] == "EmptyStepError"

    current = (await async_client.get(f"/submissions/{submission_id}", headers=ADMIN_HEADERS)).json()
    assert current["status"] == "pending"
    assert current["current_step_index"] == 0
    assert [a["status"] for a in current["actions"]] == ["pending"]


async def test_steps_are_snapshotted_at_submission(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    edit = await async_client.put(
        f"/request-types/{type_id}",
        json={"approval_steps": [_user_step("Only", OUTSIDER_ID)]},
        headers=ADMIN_HEADERS,
    )
    assert edit.status_code == 200

    resp = await _approve(async_client, submission_id, LINE_MANAGER_ID)

    data = resp.json()["submission"]
    assert data["current_step_index"] == 1
    assert {a["approver_id"] for a in data["actions"] if a["step_index"] == 1} == {str(HR_1_ID), str(HR_2_ID)}


# ---------------------------------------------------------------------------
# Rejection
# ---------------------------------------------------------------------------


async def test_reject_at_first_of_three_steps(async_client: AsyncClient) -> None:
    type_id = await _create_type(
        async_client,
        [
            _user_step("Manager", LINE_MANAGER_ID),
            _role_step("HR", HR_ROLE_ID),
            _position_step("Dean", DEAN_POSITION_ID),
        ],
    )
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await _reject(async_client, submission_id, LINE_MANAGER_ID, notes="Budget frozen")

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "submission_rejected"
    data = resp.json()["submission"]
    assert data["status"] == "rejected"
    assert data["is_completed"] is False
    assert data["current_step_index"] is None
    assert [s["status"] for s in data["approval_state"]["steps"]] == ["rejected", "pending", "pending"]
    assert len(data["actions"]) == 1
    assert data["actions"][0]["status"] == "rejected"
    assert data["actions"][0]["notes"] == "Budget frozen"


async def test_single_rejection_in_parallel_step_is_terminal(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]

    await _approve(async_client, submission_id, HR_1_ID)
    rejected = await _reject(async_client, submission_id, HR_2_ID)
    assert rejected.json()["submission"]["status"] == "rejected"
    # One approval plus one rejection still rejects the step.
    assert rejected.json()["submission"]["approval_state"]["steps"][0]["status"] == "rejected"

    late = await _approve(async_client, submission_id, HR_1_ID)
    assert late.status_code == 409
    assert late.json()["error"] == "NotPendingError"


async def test_reject_requires_notes(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await async_client.post(
        f"/submissions/{submission_id}/reject", json={"notes": ""}, headers=_headers(LINE_MANAGER_ID)
    )

    assert resp.status_code == 422


async def test_decision_on_approved_submission_returns_409(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)

    resp = await _reject(async_client, submission_id, LINE_MANAGER_ID)

    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Decisions against a specific action
# ---------------------------------------------------------------------------


async def test_decide_action_approve(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    action_id = (await _submit(async_client, type_id))["actions"][0]["id"]

    resp = await async_client.post(
        f"/actions/{action_id}/decision", json={"decision": "approve"}, headers=_headers(LINE_MANAGER_ID)
    )

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "step_complete"
    assert resp.json()["submission"]["status"] == "approved"


async def test_decide_action_by_someone_else_returns_403(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    action_id = (await _submit(async_client, type_id))["actions"][0]["id"]

    resp = await async_client.post(
        f"/actions/{action_id}/decision", json={"decision": "approve"}, headers=_headers(OUTSIDER_ID)
    )

    assert resp.status_code == 403


async def test_decide_action_twice_returns_409(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_role_step("HR", HR_ROLE_ID)])
    data = await _submit(async_client, type_id)
    action = next(a for a in data["actions"] if a["approver_id"] == str(HR_1_ID))
    url = f"/actions/{action['id']}/decision"

    first = await async_client.post(url, json={"decision": "approve"}, headers=_headers(HR_1_ID))
    assert first.json()["outcome"] == "step_not_yet_complete"

    second = await async_client.post(
        url, json={"decision": "reject", "notes": "Changed my mind"}, headers=_headers(HR_1_ID)
    )
    assert second.status_code == 409


async def test_decide_action_reject_without_notes_returns_422(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    action_id = (await _submit(async_client, type_id))["actions"][0]["id"]

    resp = await async_client.post(
        f"/actions/{action_id}/decision", json={"decision": "reject"}, headers=_headers(LINE_MANAGER_ID)
    )

    assert resp.status_code == 422


async def test_decide_unknown_action_returns_404(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"/actions/{uuid.uuid4()}/decision", json={"decision": "approve"}, headers=_headers(LINE_MANAGER_ID)
    )
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Fulfillment
# ---------------------------------------------------------------------------


async def test_final_approver_fulfills(async_client: AsyncClient, file_store: InMemoryFileStore) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission = await _submit(async_client, type_id)
    approved = await _approve(async_client, submission["id"], LINE_MANAGER_ID)
    assert approved.json()["submission"]["status"] == "fulfillment"
    assert approved.json()["submission"]["is_completed"] is False

    resp = await _fulfill(async_client, submission["id"], LINE_MANAGER_ID)

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "completed"
    assert data["is_completed"] is True
    assert data["fulfilled_at"] is not None
    fulfillment = data["fulfillment"]
    assert fulfillment["fulfilled_by"] == str(LINE_MANAGER_ID)
    assert fulfillment["original_filename"] == "letter.pdf"
    assert fulfillment["notes"] == "Signed copy"
    assert fulfillment["file_path"].startswith(f"fulfillments/{submission['reference_code']}/")
    assert fulfillment["file_url"] == f"memory://{fulfillment['file_path']}"
    assert file_store.files[fulfillment["file_path"]] == b"%PDF"


async def test_manager_can_fulfill(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await async_client.post(
        f"/submissions/{submission_id}/fulfillment",
        files={"file": ("letter.pdf", b"content", "application/pdf")},
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"


async def test_others_cannot_fulfill(async_client: AsyncClient, file_store: InMemoryFileStore) -> None:
    type_id = await _create_type(
        async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)], has_fulfillment=True
    )
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    await _approve(async_client, submission_id, HR_1_ID)
    await _approve(async_client, submission_id, HR_2_ID)

    for user_id in (REQUESTER_ID, LINE_MANAGER_ID, OUTSIDER_ID):
        resp = await _fulfill(async_client, submission_id, user_id)
        assert resp.status_code == 403, user_id
    assert file_store.files == {}

    resp = await _fulfill(async_client, submission_id, HR_2_ID)
    assert resp.status_code == 200


async def test_fulfill_pending_submission_returns_409(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await async_client.post(
        f"/submissions/{submission_id}/fulfillment",
        files={"file": ("letter.pdf", b"content", "application/pdf")},
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 409


async def test_fulfill_twice_returns_409(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    await _fulfill(async_client, submission_id, LINE_MANAGER_ID)

    resp = await _fulfill(async_client, submission_id, LINE_MANAGER_ID)

    assert resp.status_code == 409


async def test_fulfill_with_empty_file_returns_422(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)

    resp = await _fulfill(async_client, submission_id, LINE_MANAGER_ID, data=b"")

    assert resp.status_code == 422


async def test_fulfill_with_oversized_file_returns_413(
    async_client: AsyncClient,
    file_store: InMemoryFileStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 8)

    too_big = await _fulfill(async_client, submission_id, LINE_MANAGER_ID, data=b"123456789")
    assert too_big.status_code == 413
    assert file_store.files == {}

    at_limit = await _fulfill(async_client, submission_id, LINE_MANAGER_ID, data=b"12345678")
    assert at_limit.status_code == 200, at_limit.text
    assert list(file_store.files.values()) == [b"12345678"]


async def test_fulfill_losing_race_stores_no_file(
    async_client: AsyncClient,
    db_session: AsyncSession,
    file_store: InMemoryFileStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    real_lock = workflow._lock_submission

    async def _completed_meanwhile(session: AsyncSession, locked_id: uuid.UUID) -> RequestSubmission:
        # Another fulfiller commits between the status check and the row lock.
        await session.execute(
            update(RequestSubmission)
            .where(col(RequestSubmission.id) == locked_id)
            .values(status=SubmissionStatus.COMPLETED.value)
        )
        return await real_lock(session, locked_id)

    monkeypatch.setattr(workflow, "_lock_submission", _completed_meanwhile)

    resp = await _fulfill(async_client, submission_id, LINE_MANAGER_ID)

    assert resp.status_code == 409
    assert resp.json()["error"] == "InvalidTransitionError"
    assert file_store.files == {}


# ---------------------------------------------------------------------------
# Visibility and listing
# ---------------------------------------------------------------------------


async def test_get_submission_visibility(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    url = f"/submissions/{submission_id}"

    assert (await async_client.get(url, headers=_headers(REQUESTER_ID))).status_code == 200
    assert (await async_client.get(url, headers=_headers(LINE_MANAGER_ID))).status_code == 200
    assert (await async_client.get(url, headers=ADMIN_HEADERS)).status_code == 200
    assert (await async_client.get(url, headers=_headers(OUTSIDER_ID))).status_code == 403
    assert (await async_client.get(f"/submissions/{uuid.uuid4()}", headers=ADMIN_HEADERS)).status_code == 404


async def test_list_scopes(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    await _submit(async_client, type_id, user_id=OUTSIDER_ID)

    async def _total(user_headers: dict[str, str], scope: str) -> int:
        resp = await async_client.get(f"/submissions?scope={scope}", headers=user_headers)
        assert resp.status_code == 200
        return resp.json()["total"]

    assert await _total(_headers(REQUESTER_ID), "mine") == 1
    assert await _total(_headers(LINE_MANAGER_ID), "assigned") == 2
    assert await _total(_headers(HR_1_ID), "assigned") == 0
    assert await _total(ADMIN_HEADERS, "all") == 2
    # Non-managers asking for everything only see their own.
    assert await _total(_headers(REQUESTER_ID), "all") == 1

    await _approve(async_client, submission_id, LINE_MANAGER_ID)

    assert await _total(_headers(LINE_MANAGER_ID), "assigned") == 1
    assert await _total(_headers(HR_1_ID), "assigned") == 1
    assert await _total(_headers(HR_2_ID), "assigned") == 1


async def test_assigned_includes_awaiting_fulfillment(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)

    resp = await async_client.get("/submissions?scope=assigned", headers=_headers(LINE_MANAGER_ID))

    assert resp.json()["total"] == 1
    assert resp.json()["items"][0]["status"] == "fulfillment"


async def test_list_status_filter(async_client: AsyncClient) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    first = (await _submit(async_client, type_id))["id"]
    await _submit(async_client, type_id)
    await _reject(async_client, first, LINE_MANAGER_ID)

    resp = await async_client.get("/submissions?status=rejected", headers=_headers(REQUESTER_ID))

    assert resp.json()["total"] == 1
    assert resp.json()["items"][0]["id"] == first
    assert len(resp.json()["items"][0]["actions"]) == 1


# ---------------------------------------------------------------------------
# Post-commit hooks
# ---------------------------------------------------------------------------


async def test_certificate_generated_on_approval(
    async_client: AsyncClient,
    certificates: InMemoryCertificateGenerator,
) -> None:
    type_id = await _create_type(
        async_client, [_user_step("Manager", LINE_MANAGER_ID)], certificate_template_id=str(TEMPLATE_ID)
    )
    submission = await _submit(async_client, type_id)
    assert certificates.generated == []

    await _approve(async_client, submission["id"], LINE_MANAGER_ID)

    current = (await async_client.get(f"/submissions/{submission['id']}", headers=_headers(REQUESTER_ID))).json()
    assert current["certificate_path"] == f"certificates/{submission['reference_code']}.png"
    assert certificates.generated == [uuid.UUID(submission["id"])]


async def test_no_certificate_without_template(
    async_client: AsyncClient,
    certificates: InMemoryCertificateGenerator,
) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]

    resp = await _approve(async_client, submission_id, LINE_MANAGER_ID)

    assert resp.json()["submission"]["certificate_path"] is None
    assert certificates.generated == []


async def test_failing_certificate_generator_is_not_fatal(
    async_client: AsyncClient,
    certificates: InMemoryCertificateGenerator,
    caplog: pytest.LogCaptureFixture,
) -> None:
    class _BrokenGenerator:
        async def generate(self, *args: object) -> str | None:
            raise RuntimeError("renderer offline")

    set_certificate_generator(_BrokenGenerator())
    type_id = await _create_type(
        async_client, [_user_step("Manager", LINE_MANAGER_ID)], certificate_template_id=str(TEMPLATE_ID)
    )
    submission_id = (await _submit(async_client, type_id))["id"]

    with caplog.at_level(logging.ERROR, logger="hrflow.services.hooks"):
        resp = await _approve(async_client, submission_id, LINE_MANAGER_ID)

    assert resp.status_code == 200
    assert resp.json()["submission"]["status"] == "approved"
    assert resp.json()["submission"]["certificate_path"] is None
    assert "certificate_hook failed" in caplog.text


async def test_requester_notified_on_rejection(async_client: AsyncClient, notifier: InMemoryNotifier) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission = await _submit(async_client, type_id)

    await _reject(async_client, submission["id"], LINE_MANAGER_ID)

    assert len(notifier.sent) == 1
    notice = notifier.sent[0]
    assert notice.requester_id == REQUESTER_ID
    assert notice.reference_code == submission["reference_code"]
    assert notice.status == "rejected"


async def test_requester_notified_on_completion_only(async_client: AsyncClient, notifier: InMemoryNotifier) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)], has_fulfillment=True)
    submission_id = (await _submit(async_client, type_id))["id"]

    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    assert notifier.sent == []

    await _fulfill(async_client, submission_id, LINE_MANAGER_ID)
    assert [n.status for n in notifier.sent] == ["completed"]


async def test_hooks_receive_each_transition(async_client: AsyncClient) -> None:
    events: list[TransitionEvent] = []

    async def _record(_session: AsyncSession, event: TransitionEvent) -> None:
        events.append(event)

    set_post_commit_hooks([_record])
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    await _reject(async_client, submission_id, HR_1_ID)

    assert [(e.from_status, e.to_status) for e in events] == [
        (None, "pending"),
        ("pending", "pending"),
        ("pending", "rejected"),
    ]
    assert [e.status_changed for e in events] == [True, False, True]
    assert all(str(e.submission_id) == submission_id for e in events)
    assert events[1].actor_id == LINE_MANAGER_ID


async def test_no_hooks_fire_on_refused_decision(async_client: AsyncClient) -> None:
    events: list[TransitionEvent] = []

    async def _record(_session: AsyncSession, event: TransitionEvent) -> None:
        events.append(event)

    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    set_post_commit_hooks([_record])

    resp = await _approve(async_client, submission_id, OUTSIDER_ID)

    assert resp.status_code == 403
    assert events == []


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


async def test_workflow_writes_audit_trail(async_client: AsyncClient, db_session: AsyncSession) -> None:
    type_id = await _create_type(async_client, [_user_step("Manager", LINE_MANAGER_ID), _role_step("HR", HR_ROLE_ID)])
    submission_id = (await _submit(async_client, type_id))["id"]
    await _approve(async_client, submission_id, LINE_MANAGER_ID)
    await _approve(async_client, submission_id, HR_1_ID)
    await _approve(async_client, submission_id, HR_2_ID)

    result = await db_session.execute(
        select(AuditLog)
        .where(col(AuditLog.entity_type) == "SUBMISSION", col(AuditLog.entity_id) == uuid.UUID(submission_id))
        .order_by(col(AuditLog.created_at))
    )
    entries = list(result.scalars().all())
    assert [e.action for e in entries] == ["SUBMIT", "ADVANCE", "APPROVE"]
    assert entries[0].new_value == "pending"
    assert entries[1].old_value == 0
    assert entries[1].new_value == 1
    assert entries[2].old_value == "pending"
    assert entries[2].new_value == "approved"
    assert entries[2].actor_id == HR_2_ID

    action_result = await db_session.execute(
        select(AuditLog).where(col(AuditLog.entity_type) == "APPROVAL_ACTION", col(AuditLog.action) == "APPROVE")
    )
    assert len(action_result.scalars().all()) == 3
