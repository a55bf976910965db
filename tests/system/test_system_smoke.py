"""
System smoke test: full API flow in-process with SQLite.
Verifies health, projects, agent keys, the agent review loop, activity
paging and the error contract.
"""

import pytest
from httpx import AsyncClient

API = "/api/v1"

EVIDENCE = {
    "chatSessionId": "chat-2026-10-18",
    "resolutionNote": "Submit button re-enabled once the form validates.",
    "codeChanges": "checkout/Form.tsx: derive disabled from validity",
    "commandOutputs": [{"command": "npm test", "output": "42 passed", "exitCode": 0}],
    "testSummary": "42 passed",
}


async def _issue_key(client: AsyncClient, headers: dict, project_id) -> dict:
    response = await client.post(f"{API}/projects/{project_id}/agent-keys", json={"name": "ci-agent"}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _create_item(client: AsyncClient, headers: dict, project_id, **fields) -> dict:
    body = {"projectId": str(project_id), "type": "issue", "title": "Checkout submit blocked"}
    body.update(fields)
    response = await client.post(f"{API}/items", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"


@pytest.mark.asyncio
async def test_project_setup(client: AsyncClient, member, other_member, auth_headers):
    headers = auth_headers(member)

    created = await client.post(f"{API}/projects", json={"name": "Storefront"}, headers=headers)
    assert created.status_code == 201
    project_id = created.json()["id"]

    listed = await client.get(f"{API}/projects", headers=headers)
    assert [p["id"] for p in listed.json()] == [project_id]

    hidden = await client.get(f"{API}/projects/{project_id}", headers=auth_headers(other_member))
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_agent_review_loop(client: AsyncClient, member, project, auth_headers):
    human = auth_headers(member)
    issued = await _issue_key(client, human, project.id)
    agent = {"X-Agent-Key": issued["token"]}
    assert issued["token"].startswith(issued["prefix"])

    item = await _create_item(client, human, project.id, tags=["checkout", "ui"])
    assert item["status"] == "open"
    item_url = f"{API}/items/{item['id']}"

    prompt = await client.get(f"{item_url}/prompt", headers=agent)
    assert prompt.status_code == 200
    assert "[GOAL]" in prompt.json()["prompt"]
    assert "Checkout submit blocked" in prompt.json()["prompt"]

    resolved = await client.post(f"{item_url}/resolve", json=EVIDENCE, headers=agent)
    assert resolved.status_code == 200, resolved.text
    assert resolved.json()["item"]["status"] == "in_review"
    assert len(resolved.json()["activityIds"]) == 2

    # Agents submit; only humans decide
    forbidden = await client.post(f"{item_url}/review", json={"decision": "approve"}, headers=agent)
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "FORBIDDEN"

    rejected = await client.post(
        f"{item_url}/review", json={"decision": "reject", "note": "Fails on Safari"}, headers=human
    )
    assert rejected.json()["status"] == "in_progress"

    again = await client.post(f"{item_url}/resolve", json=EVIDENCE, headers=agent)
    assert again.json()["item"]["status"] == "in_review"

    approved = await client.post(f"{item_url}/review", json={"decision": "approve"}, headers=human)
    assert approved.json()["status"] == "resolved"

    closed = await client.post(f"{item_url}/resolve", json=EVIDENCE, headers=agent)
    assert closed.status_code == 409
    assert closed.json()["code"] == "INVALID_TRANSITION"

    first = await client.get(f"{item_url}/activity", params={"limit": 4}, headers=human)
    body = first.json()
    assert [event["type"] for event in body["items"]][0] == "REVIEW_APPROVED"
    assert body["page"]["limit"] == 4
    assert body["page"]["nextCursor"]

    rest = await client.get(
        f"{item_url}/activity", params={"limit": 4, "cursor": body["page"]["nextCursor"]}, headers=human
    )
    remaining = rest.json()
    assert remaining["page"]["nextCursor"] is None
    # ITEM_CREATED, 2x (RESOLUTION_NOTE + STATUS_CHANGE), REVIEW_REJECTED, REVIEW_APPROVED
    assert len(body["items"]) + len(remaining["items"]) == 7
    assert remaining["items"][-1]["type"] == "ITEM_CREATED"

    status_change = next(e for e in body["items"] + remaining["items"] if e["type"] == "STATUS_CHANGE")
    assert status_change["actorType"] == "AGENT"
    assert status_change["agentKeyId"] == issued["keyId"]
    assert status_change["metadata"] in ({"from": "open", "to": "in_review"}, {"from": "in_progress", "to": "in_review"})


@pytest.mark.asyncio
async def test_incomplete_evidence_reports_every_missing_field(client, member, project, auth_headers):
    human = auth_headers(member)
    issued = await _issue_key(client, human, project.id)
    item = await _create_item(client, human, project.id)

    response = await client.post(
        f"{API}/items/{item['id']}/resolve",
        json={"chatSessionId": "chat-1"},
        headers={"X-Agent-Key": issued["token"]},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_FAILED"
    assert {issue["field"] for issue in body["issues"]} == {"resolutionNote", "codeChanges", "commandOutputs"}

    fetched = await client.get(f"{API}/items/{item['id']}", headers=human)
    assert fetched.json()["status"] == "open"


@pytest.mark.asyncio
async def test_agent_cannot_reach_other_projects(client, member, project, other_item, auth_headers):
    issued = await _issue_key(client, auth_headers(member), project.id)
    agent = {"X-Agent-Key": issued["token"]}

    response = await client.get(f"{API}/items/{other_item.id}", headers=agent)
    assert response.status_code == 404

    response = await client.post(f"{API}/items/{other_item.id}/resolve", json=EVIDENCE, headers=agent)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_revoked_key_is_rejected(client, member, project, auth_headers):
    human = auth_headers(member)
    issued = await _issue_key(client, human, project.id)
    agent = {"X-Agent-Key": issued["token"]}

    assert (await client.get(f"{API}/items", headers=agent)).status_code == 200

    revoked = await client.post(f"{API}/projects/{project.id}/agent-keys/{issued['keyId']}/revoke", headers=human)
    assert revoked.status_code == 200
    assert revoked.json()["revokedAt"]
    assert "secretHash" not in revoked.json()

    response = await client.get(f"{API}/items", headers=agent)
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_both_credentials_are_rejected(client, member, agent_key, auth_headers):
    headers = {**auth_headers(member), "X-Agent-Key": agent_key.token}

    response = await client.get(f"{API}/items", headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_status_is_not_editable_through_patch(client, member, item, auth_headers):
    response = await client.patch(f"{API}/items/{item.id}", json={"status": "resolved"}, headers=auth_headers(member))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_status_endpoint(client, member, item, auth_headers):
    headers = auth_headers(member)
    url = f"{API}/items/{item.id}/status"

    # Resolution only happens through review
    skipped_review = await client.patch(url, json={"status": "resolved"}, headers=headers)
    assert skipped_review.status_code == 409
    assert skipped_review.json()["code"] == "INVALID_TRANSITION"

    moved = await client.patch(url, json={"status": "in_progress"}, headers=headers)
    assert moved.json()["status"] == "in_progress"

    stale = await client.patch(url, json={"status": "resolved", "expectedStatus": "open"}, headers=headers)
    assert stale.status_code == 409
    assert stale.json()["currentStatus"] == "in_progress"

    invalid = await client.patch(url, json={"status": "open"}, headers=headers)
    assert invalid.status_code == 409
    assert invalid.json()["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_images(client, member, item, auth_headers):
    headers = auth_headers(member)
    url = f"{API}/items/{item.id}/images"
    images = [
        {"filename": f"shot-{n}.png", "mimeType": "image/png", "sizeBytes": 1024, "relativePath": f"items/{item.id}/shot-{n}.png"}
        for n in range(2)
    ]

    created = await client.post(url, json={"images": images}, headers=headers)
    assert created.status_code == 201
    ids = [image["id"] for image in created.json()]
    assert [image["sortOrder"] for image in created.json()] == [0, 1]

    reordered = await client.patch(f"{url}/reorder", json={"imageIds": ids[::-1]}, headers=headers)
    assert [image["id"] for image in reordered.json()] == ids[::-1]

    not_an_image = await client.post(
        url,
        json={"images": [{**images[0], "mimeType": "application/pdf"}]},
        headers=headers,
    )
    assert not_an_image.status_code == 400

    deleted = await client.delete(f"{url}/{ids[0]}", headers=headers)
    assert deleted.status_code == 204

    activity = await client.get(f"{API}/activity", params={"type": ["IMAGE_UPLOADED", "IMAGE_DELETED"]}, headers=headers)
    assert sorted(event["type"] for event in activity.json()["items"]) == [
        "IMAGE_DELETED",
        "IMAGE_UPLOADED",
        "IMAGE_UPLOADED",
    ]


@pytest.mark.asyncio
async def test_invalid_cursor(client, member, auth_headers):
    response = await client.get(f"{API}/activity", params={"cursor": "%%%"}, headers=auth_headers(member))

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CURSOR"
