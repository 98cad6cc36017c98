# src/aegis/tests/test_academics.py
from __future__ import annotations

import uuid

import pytest

from aegis.api.routers.attendance import summarize_attendance
from aegis.db.models import AttendanceStatus, UserRole
from aegis.tests.utils.envelope import data_of, error_of

pytestmark = pytest.mark.anyio

COURSE = {
    "code": "CS-101",
    "title": "Introduction to Programming",
    "description": "Python from scratch",
    "credits": 4,
    "department": "Computer Science",
    "course_type": "core",
    "semester": "2026-odd",
}


async def _course(client, **overrides):
    return data_of(await client.post("/api/courses", json={**COURSE, **overrides}))


def test_attendance_summary_excludes_cancelled():
    s = summarize_attendance(
        [AttendanceStatus.PRESENT, AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.CANCELLED]
    )
    assert (s.total, s.present, s.absent, s.cancelled) == (4, 2, 1, 1)
    assert s.percentage == 66.67
    assert summarize_attendance([AttendanceStatus.CANCELLED]).percentage == 0.0
    assert summarize_attendance([]).percentage == 0.0


# ---- courses ----
async def test_faculty_creates_course_as_instructor(client, make_user, login):
    prof = await make_user(UserRole.FACULTY)
    await login(prof)
    c = await _course(client, instructor_email="someone-else@iitmandi.ac.in")
    assert c["code"] == "CS-101"
    assert c["instructor"]["id"] == str(prof.id)

    assert error_of(await client.post("/api/courses", json=COURSE), 400) == "Course code CS-101 already exists"


async def test_admin_names_the_instructor(client, make_user, login):
    await make_user(UserRole.FACULTY, email="turing@iitmandi.ac.in")
    await login(await make_user(UserRole.ADMIN))

    c = await _course(client, instructor_email="Turing@IITMandi.ac.in")
    assert c["instructor"]["email"] == "turing@iitmandi.ac.in"
    assert error_of(
        await client.post("/api/courses", json={**COURSE, "code": "CS-102", "instructor_email": "ghost@iitmandi.ac.in"}),
        400,
    ) == "Instructor email not found"
    assert (await _course(client, code="CS-103"))["instructor"] is None


async def test_students_cannot_create_courses(client, make_user, login):
    await login(await make_user())
    error_of(await client.post("/api/courses", json=COURSE), 403)


async def test_catalogue_is_public_and_filterable(client, make_user, login):
    await login(await make_user(UserRole.FACULTY))
    await _course(client, code="MA-201", title="Linear Algebra", department="Mathematics")
    await _course(client, code="CS-201", title="Data Structures", semester="2026-even")
    await _course(client)

    client.cookies.clear()
    codes = [c["code"] for c in data_of(await client.get("/api/courses"))]
    assert codes == ["CS-101", "CS-201", "MA-201"]

    maths = data_of(await client.get("/api/courses", params={"department": "Mathematics"}))
    assert [c["code"] for c in maths] == ["MA-201"]
    even = data_of(await client.get("/api/courses", params={"semester": "2026-even"}))
    assert [c["code"] for c in even] == ["CS-201"]
    hits = data_of(await client.get("/api/courses", params={"search": "cs-2"}))
    assert [c["code"] for c in hits] == ["CS-201"]


async def test_enrollment(client, make_user, login):
    await login(await make_user(UserRole.FACULTY))
    course = await _course(client)

    error_of(await client.post("/api/courses/enroll", json={"course_id": course["id"]}), 403)

    student = await make_user()
    await login(student)
    r = await client.post("/api/courses/enroll", json={"course_id": course["id"]})
    assert data_of(r) == "Enrolled successfully"
    assert error_of(
        await client.post("/api/courses/enroll", json={"course_id": course["id"]}), 400
    ) == "You are already enrolled in this course"
    error_of(await client.post("/api/courses/enroll", json={"course_id": str(uuid.uuid4())}), 404)

    mine = data_of(await client.get("/api/courses/my-enrollments"))
    assert [c["id"] for c in mine] == [course["id"]]

    detail = data_of(await client.get(f"/api/courses/{course['id']}"))
    assert detail["enrolled_count"] == 1
    error_of(await client.get(f"/api/courses/{uuid.uuid4()}"), 404)


# ---- attendance ----
async def test_mark_attendance_upserts_per_day(client, make_user, login):
    prof = await make_user(UserRole.FACULTY)
    await login(prof)
    course = await _course(client)

    student = await make_user()
    outsider = await make_user()
    await login(student)
    await client.post("/api/courses/enroll", json={"course_id": course["id"]})

    await login(prof)
    mark = {"course_id": course["id"], "student_id": str(student.id), "date": "2026-02-02", "status": "absent"}
    first = data_of(await client.post("/api/attendance/mark", json=mark))
    second = data_of(await client.post("/api/attendance/mark", json={**mark, "status": "present", "remarks": "late"}))
    assert first["id"] == second["id"]
    assert second["status"] == "present"
    await client.post("/api/attendance/mark", json={**mark, "date": "2026-02-03", "status": "absent"})
    await client.post("/api/attendance/mark", json={**mark, "date": "2026-02-04", "status": "cancelled"})

    assert error_of(
        await client.post("/api/attendance/mark", json={**mark, "student_id": str(outsider.id)}), 400
    ) == "Student is not enrolled in this course"

    await login(student)
    error_of(await client.post("/api/attendance/mark", json=mark), 403)
    report = data_of(await client.get(f"/api/attendance/{course['id']}"))
    assert [log["date"] for log in report["logs"]] == ["2026-02-04", "2026-02-03", "2026-02-02"]
    assert report["logs"][2]["remarks"] == "late"
    assert report["summary"] == {"total": 3, "present": 1, "absent": 1, "cancelled": 1, "percentage": 50.0}

    await login(outsider)
    error_of(await client.get(f"/api/attendance/{course['id']}"), 404)


# ---- resources ----
async def test_resources(client, make_user, login):
    prof = await make_user(UserRole.FACULTY)
    await login(prof)
    course = await _course(client)
    url = f"/api/courses/{course['id']}/resources"

    pyq = data_of(
        await client.post(
            url,
            json={"title": "Endsem 2024", "resource_type": "pyq", "file_url": "https://x/e.pdf", "year": 2024},
        )
    )
    assert pyq["uploaded_by"]["id"] == str(prof.id)
    data_of(await client.post(url, json={"title": "Week 1", "resource_type": "notes", "file_url": "https://x/w1.pdf", "tags": ["intro"]}))
    error_of(await client.post(f"/api/courses/{uuid.uuid4()}/resources", json={"title": "x", "resource_type": "notes", "file_url": "u"}), 404)

    await login(await make_user())
    error_of(await client.post(url, json={"title": "x", "resource_type": "notes", "file_url": "u"}), 403)
    everything = data_of(await client.get(url))
    assert {r["title"] for r in everything} == {"Endsem 2024", "Week 1"}
    pyqs = data_of(await client.get(url, params={"resource_type": "pyq", "year": 2024}))
    assert [r["title"] for r in pyqs] == ["Endsem 2024"]


# ---- events ----
async def test_calendar_shows_relevant_events(client, make_user, login):
    prof = await make_user(UserRole.FACULTY)
    await login(prof)
    cs = await _course(client)
    ma = await _course(client, code="MA-101")

    def event(title, course_id=None, start="2026-03-01T10:00:00"):
        body = {"title": title, "event_type": "exam", "start_time": start}
        if course_id:
            body["course_id"] = course_id
        return body

    data_of(await client.post("/api/events", json=event("Holi", start="2026-03-04T00:00:00")))
    created = data_of(await client.post("/api/events", json=event("CS midsem", cs["id"])))
    assert created["course_code"] == "CS-101"
    data_of(await client.post("/api/events", json=event("MA quiz", ma["id"], start="2026-03-02T10:00:00")))
    error_of(await client.post("/api/events", json=event("Ghost", str(uuid.uuid4()))), 404)
    error_of(
        await client.post(
            "/api/events", json={**event("Backwards"), "end_time": "2026-02-01T10:00:00"}
        ),
        400,
    )

    student = await make_user()
    await login(student)
    await client.post("/api/courses/enroll", json={"course_id": cs["id"]})
    error_of(await client.post("/api/events", json=event("Party")), 403)

    titles = [e["title"] for e in data_of(await client.get("/api/events"))]
    assert titles == ["CS midsem", "Holi"]

    await login(prof)
    titles = [e["title"] for e in data_of(await client.get("/api/events"))]
    assert titles == ["CS midsem", "MA quiz", "Holi"]
