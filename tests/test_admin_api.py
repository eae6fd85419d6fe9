from portal.models import (
    Announcement,
    Payment,
    PaymentStatus,
    Student,
    StudentApprovalLog,
    Subject,
    TeacherSubject,
    User,
    UserRole,
)

from conftest import make_token


def test_user_listing_is_admin_only(client, admin, teacher, headers):
    assert client.get("/api/users", headers=headers(teacher)).status_code == 403
    response = client.get("/api/users", headers=headers(admin))
    assert response.status_code == 200
    assert {user["email"] for user in response.json()} == {"admin@elbethel.test", "teacher@elbethel.test"}

    teachers = client.get("/api/admin/users", params={"role": "teacher"}, headers=headers(admin)).json()
    assert [user["email"] for user in teachers] == ["teacher@elbethel.test"]


def test_main_admin_email_bypasses_role_lookup(client):
    token = make_token("not-in-portal", "principal@elbethel.test")
    response = client.get("/api/admin/overview", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_patch_user(client, admin, teacher, headers):
    response = client.patch(f"/api/users/{teacher.id}", json={"role": "bursar", "is_approved": True}, headers=headers(admin))
    assert response.status_code == 200
    assert response.json()["role"] == "bursar"
    assert response.json()["is_approved"] is True

    empty = client.patch(f"/api/users/{teacher.id}", json={}, headers=headers(admin))
    assert empty.status_code == 400
    assert empty.json()["error"] == "No fields to update"

    assert client.patch("/api/users/missing", json={"role": "admin"}, headers=headers(admin)).status_code == 404


def test_admin_creates_teacher_with_subject(client, admin, school_class, headers, db):
    subject = Subject(name="Mathematics", class_id=school_class.id)
    db.add(subject)
    db.commit()

    response = client.post(
        "/api/admin/users",
        json={
            "email": "newteacher@elbethel.test",
            "full_name": "New Teacher",
            "role": "teacher",
            "password": "password1",
            "subject_id": subject.id,
        },
        headers=headers(admin),
    )

    assert response.status_code == 201
    created = response.json()["data"]
    assert created["is_approved"] is True
    assert db.query(TeacherSubject).filter(TeacherSubject.teacher_id == created["id"]).count() == 1


def test_admin_creates_approved_student(client, admin, school_class, headers, db):
    response = client.post(
        "/api/admin/users",
        json={
            "email": "pupil@elbethel.test",
            "full_name": "Pupil One",
            "role": "student",
            "password": "password1",
            "class_id": school_class.id,
        },
        headers=headers(admin),
    )
    student = db.query(Student).filter(Student.user_id == response.json()["data"]["id"]).one()
    assert student.approved is True
    assert student.class_id == school_class.id

    bad_class = client.post(
        "/api/admin/users",
        json={"email": "x@elbethel.test", "full_name": "X Y", "role": "student", "password": "password1", "class_id": "nope"},
        headers=headers(admin),
    )
    assert bad_class.status_code == 404


def test_overview_counts(client, admin, make_student, headers, db):
    user, _ = make_student(approved=False)
    make_student()
    db.add(Payment(student_id=user.id, amount=5000, status=PaymentStatus.APPROVED))
    db.add(Payment(student_id=user.id, amount=2000, status=PaymentStatus.PENDING))
    db.add(Announcement(title="Welcome back"))
    db.commit()

    payload = client.get("/api/admin/overview", headers=headers(admin)).json()

    assert payload["stats"]["totalStudents"] == 2
    assert payload["stats"]["totalRevenue"] == 5000.0
    assert payload["stats"]["pendingPayments"] == 1
    assert payload["pendingApprovals"] == 1
    assert payload["recentAnnouncements"][0]["title"] == "Welcome back"


def test_pending_students_and_approval(client, admin, make_student, headers, db):
    user, student = make_student(approved=False)
    user.is_approved = False
    db.commit()

    pending = client.get("/api/admin/students/pending", headers=headers(admin)).json()
    assert pending["count"] == 1
    assert pending["data"][0]["id"] == student.id

    response = client.post(
        "/api/admin/students/approve",
        json={"studentId": student.id, "approved": True, "note": "Documents verified"},
        headers=headers(admin),
    )
    assert response.json() == {"message": "Student approved successfully", "studentId": student.id, "approved": True}

    db.expire_all()
    assert db.get(Student, student.id).approved is True
    assert db.get(User, user.id).is_approved is True
    log = db.query(StudentApprovalLog).one()
    assert (log.action, log.admin_user_id, log.note) == ("approved", admin.id, "Documents verified")

    missing = client.post("/api/admin/students/approve", json={"studentId": "nope"}, headers=headers(admin))
    assert missing.status_code == 404


def test_settings_are_seeded_and_updatable(client, admin, headers):
    seeded = client.get("/api/admin/settings", headers=headers(admin)).json()["settings"]
    assert seeded["school_code"] == "ELBA"
    assert seeded["student_registration_open"] is True

    saved = client.post(
        "/api/admin/settings",
        json={"student_registration_open": False, "current_term": "Second Term"},
        headers=headers(admin),
    ).json()
    assert saved["success"] is True
    assert saved["settings"]["student_registration_open"] is False
    assert saved["settings"]["current_term"] == "Second Term"
    assert saved["settings"]["school_code"] == "ELBA"


def test_non_admin_cannot_touch_settings(client, make_user, headers):
    bursar = make_user(UserRole.BURSAR)
    assert client.get("/api/admin/settings", headers=headers(bursar)).status_code == 403


def test_admin_registers_teacher_with_class_subjects(client, admin, school_class, headers, db):
    maths = Subject(name="Mathematics", code="MTH", class_id=school_class.id)
    stray = Subject(name="Chemistry", code="CHM", class_id=None)
    db.add_all([maths, stray])
    db.commit()

    response = client.post(
        "/api/teachers/register",
        json={
            "firstName": "Bola",
            "lastName": "Adeyemi",
            "email": "Bola@ElBethel.test",
            "password": "secret1",
            "qualification": "B.Ed Mathematics",
            "assignedClasses": [school_class.id],
            "assignedSubjects": [maths.id, stray.id],
        },
        headers=headers(admin),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "bola@elbethel.test"
    assert data["fullName"] == "Bola Adeyemi"
    assert data["classesAssigned"] == 1
    assert data["subjectsAssigned"] == 1

    created = db.get(User, data["userId"])
    assert created.role == UserRole.TEACHER
    assert created.is_approved is True
    assert created.qualification == "B.Ed Mathematics"
    links = db.query(TeacherSubject).filter(TeacherSubject.teacher_id == created.id).all()
    assert [link.subject_id for link in links] == [maths.id]


def test_teacher_registration_validation(client, admin, teacher, identity, headers):
    base = {"firstName": "Bola", "lastName": "Adeyemi", "email": "bola@elbethel.test", "password": "secret1"}

    cases = [
        ({"firstName": " "}, "First name is required"),
        ({"lastName": ""}, "Last name is required"),
        ({"email": "not-an-email"}, "Valid email is required"),
        ({"password": "123"}, "Password must be at least 6 characters"),
    ]
    for override, message in cases:
        response = client.post("/api/teachers/register", json={**base, **override}, headers=headers(admin))
        assert response.status_code == 400
        assert response.json() == {"error": message}

    duplicate = client.post(
        "/api/teachers/register",
        json={**base, "email": "teacher@elbethel.test"},
        headers=headers(admin),
    )
    assert duplicate.status_code == 409

    identity.fail_with = "User already registered"
    rejected = client.post("/api/teachers/register", json=base, headers=headers(admin))
    assert rejected.status_code == 400
    assert rejected.json() == {"error": "User already registered"}


def test_teacher_registration_is_admin_only(client, teacher, headers):
    response = client.post(
        "/api/teachers/register",
        json={"firstName": "Self", "lastName": "Made", "email": "self@elbethel.test", "password": "secret1"},
        headers=headers(teacher),
    )
    assert response.status_code == 403
    assert client.get("/api/teachers/dropdown-data", headers=headers(teacher)).status_code == 403


def test_teacher_dropdown_data(client, admin, school_class, headers, db):
    db.add(Subject(name="Mathematics", code="MTH", class_id=school_class.id))
    db.commit()

    body = client.get("/api/teachers/dropdown-data", headers=headers(admin)).json()
    assert body["success"] is True
    assert {"id": school_class.id, "name": "JSS1", "form_level": school_class.form_level} in body["classes"]
    assert {"name": "Mathematics", "code": "MTH"} == {key: body["subjects"][0][key] for key in ("name", "code")}
