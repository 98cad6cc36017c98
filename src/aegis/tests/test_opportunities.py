# src/aegis/tests/test_opportunities.py
from __future__ import annotations

import uuid

import pytest

from aegis.db.models import Opportunity, OpportunityType, UserRole
from aegis.tests.utils.envelope import data_of, error_of

pytestmark = pytest.mark.anyio

POSTING = {
    "title": "Summer research intern",
    "description": "Work on campus energy data",
    "opportunity_type": "research",
    "department": "Electrical",
    "required_skills": ["python", "pandas"],
    "stipend": "10k/month",
}


async def test_posting_is_faculty_or_admin(client, make_user, login):
    await login(await make_user())
    error_of(await client.post("/api/opportunities", json=POSTING), 403)

    prof = await make_user(UserRole.FACULTY)
    await login(prof)
    op = data_of(await client.post("/api/opportunities", json=POSTING))
    assert op["posted_by"]["id"] == str(prof.id)
    assert op["is_active"] is True
    assert op["required_skills"] == ["python", "pandas"]


async def test_listing_filters_and_hides_closed(client, make_user, login, sessionmaker):
    poster = await make_user(UserRole.FACULTY)
    await login(poster)
    data_of(await client.post("/api/opportunities", json=POSTING))
    data_of(await client.post("/api/opportunities", json={**POSTING, "title": "TA for CS-101", "opportunity_type": "teaching_assistant", "department": "CSE"}))
    async with sessionmaker() as s:
        s.add(Opportunity(title="Old", description="closed", opportunity_type=OpportunityType.PROJECT, is_active=False, posted_by=poster.id))
        await s.commit()

    client.cookies.clear()
    everything = data_of(await client.get("/api/opportunities"))
    assert [o["title"] for o in everything] == ["TA for CS-101", "Summer research intern"]
    assert all(o["has_applied"] is False for o in everything)

    ta = data_of(await client.get("/api/opportunities", params={"type": "teaching_assistant"}))
    assert [o["title"] for o in ta] == ["TA for CS-101"]
    cse = data_of(await client.get("/api/opportunities", params={"department": "Electrical"}))
    assert [o["title"] for o in cse] == ["Summer research intern"]


async def test_apply_review_and_track(client, make_user, login):
    prof = await make_user(UserRole.FACULTY)
    await login(prof)
    op = data_of(await client.post("/api/opportunities", json=POSTING))

    student = await make_user()
    await login(student)
    url = f"/api/opportunities/{op['id']}/apply"
    assert data_of(await client.post(url, json={"cover_letter": "Hire me", "resume_url": "https://x/cv.pdf"})) == (
        "Application submitted successfully"
    )
    assert error_of(await client.post(url, json={}), 400) == "You have already applied"
    error_of(await client.post(f"/api/opportunities/{uuid.uuid4()}/apply"), 404)

    listed = data_of(await client.get("/api/opportunities"))
    assert listed[0]["has_applied"] is True
    error_of(await client.get(f"/api/opportunities/{op['id']}/applications"), 403)

    # another professor can't review this posting
    await login(await make_user(UserRole.FACULTY))
    error_of(await client.get(f"/api/opportunities/{op['id']}/applications"), 403)

    await login(prof)
    apps = data_of(await client.get(f"/api/opportunities/{op['id']}/applications"))
    assert len(apps) == 1
    assert apps[0]["student"]["id"] == str(student.id)
    assert apps[0]["cover_letter"] == "Hire me"
    assert apps[0]["status"] == "pending"

    r = await client.put(
        f"/api/applications/{apps[0]['id']}/status", json={"status": "shortlisted", "faculty_remarks": "Interview Monday"}
    )
    assert data_of(r) == "Application marked as shortlisted"
    error_of(await client.put(f"/api/applications/{uuid.uuid4()}/status", json={"status": "accepted"}), 404)

    await login(student)
    error_of(await client.put(f"/api/applications/{apps[0]['id']}/status", json={"status": "accepted"}), 403)
    mine = data_of(await client.get("/api/applications/my-applications"))
    assert len(mine) == 1
    assert mine[0]["status"] == "shortlisted"
    assert mine[0]["faculty_remarks"] == "Interview Monday"
    assert mine[0]["opportunity"]["title"] == "Summer research intern"
    assert mine[0]["opportunity"]["has_applied"] is True


async def test_applying_to_closed_posting(client, make_user, login, sessionmaker):
    poster = await make_user(UserRole.FACULTY)
    async with sessionmaker() as s:
        closed = Opportunity(title="Old", description="closed", opportunity_type=OpportunityType.PROJECT, is_active=False, posted_by=poster.id)
        s.add(closed)
        await s.commit()
    await login(await make_user())
    assert error_of(await client.post(f"/api/opportunities/{closed.id}/apply"), 404) == "Opportunity not found or closed"
