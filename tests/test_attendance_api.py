from portal.models import Attendance


def test_mark_single_and_bulk_attendance(client, teacher, make_student, headers, school_class, db):
    _, first = make_student()
    _, second = make_student()

    single = client.post(
        "/api/teacher/attendance",
        json={"student_id": first.id, "class_id": school_class.id, "date": "2025-03-03", "status": "Present"},
        headers=headers(teacher),
    )
    assert single.json()["message"] == "Attendance recorded successfully"
    assert single.json()["data"][0]["student"]["full_name"] == "Test Student"
    assert single.json()["data"][0]["class"] == {"name": "JSS1"}

    bulk = client.post(
        "/api/teacher/attendance",
        json={
            "records": [
                {"student_id": first.id, "class_id": school_class.id, "attendance_date": "2025-03-03", "status": "Late"},
                {"student_id": second.id, "class_id": school_class.id, "attendance_date": "2025-03-03", "status": "Absent"},
            ]
        },
        headers=headers(teacher),
    )
    assert len(bulk.json()["data"]) == 2

    # Re-marking the same day overwrites instead of duplicating.
    rows = db.query(Attendance).filter(Attendance.student_id == first.id).all()
    assert [(row.status, row.marked_by) for row in rows] == [("Late", teacher.id)]

    listed = client.get(
        "/api/teacher/attendance",
        params={"classId": school_class.id, "date": "2025-03-03"},
        headers=headers(teacher),
    ).json()["data"]
    assert {item["status"] for item in listed} == {"Late", "Absent"}


def test_mark_attendance_validation(client, teacher, make_student, headers, school_class):
    _, student = make_student()

    missing = client.post("/api/teacher/attendance", json={"student_id": student.id}, headers=headers(teacher))
    assert missing.status_code == 400
    assert missing.json() == {"error": "Missing required fields"}

    bad_status = client.post(
        "/api/teacher/attendance",
        json={"student_id": student.id, "class_id": school_class.id, "date": "2025-03-03", "status": "Sick"},
        headers=headers(teacher),
    )
    assert bad_status.status_code == 400

    unknown = client.post(
        "/api/teacher/attendance",
        json={"student_id": "ghost", "class_id": school_class.id, "date": "2025-03-03", "status": "Present"},
        headers=headers(teacher),
    )
    assert unknown.status_code == 404


def test_student_attendance_summary(client, teacher, make_student, headers, school_class):
    user, student = make_student()
    for day, status in (("2025-03-03", "Present"), ("2025-03-04", "Late"), ("2025-03-05", "Absent"), ("2025-03-06", "Present")):
        client.post(
            "/api/teacher/attendance",
            json={"student_id": student.id, "class_id": school_class.id, "date": day, "status": status},
            headers=headers(teacher),
        )

    summary = client.get("/api/student/attendance", headers=headers(user)).json()

    assert (summary["total"], summary["present"], summary["percentage"]) == (4, 3, 75.0)
    assert summary["records"][0]["attendance_date"] == "2025-03-06"


def test_attendance_endpoints_are_role_scoped(client, teacher, make_student, headers):
    user, _ = make_student()
    assert client.get("/api/teacher/attendance", headers=headers(user)).status_code == 403
    assert client.get("/api/student/attendance", headers=headers(teacher)).status_code == 403
