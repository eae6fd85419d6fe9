from portal.admission import parse_admission_number, two_digit_year
from portal.models import SchoolSettings, Student, Subject, User
from portal.services import students as student_service

YEAR = two_digit_year()

REGISTRATION = {
    "email": "Chidi@ElBethel.test",
    "password": "password1",
    "fullName": "Chidi Okafor",
    "phone": "+2348022222222",
    "classLevel": "JSS1",
    "department": "Science",
    "guardianName": "Mrs Okafor",
    "guardianPhone": "+2348033333333",
}


def test_classes_are_seeded_and_public(client):
    names = [item["name"] for item in client.get("/api/classes").json()]
    assert names == ["JSS1", "JSS2", "JSS3", "SSS1", "SSS2", "SSS3"]


def test_class_and_subject_creation_needs_admin(client, admin, teacher, headers, school_class):
    assert client.post("/api/classes", json={"name": "JSS1 Gold"}, headers=headers(teacher)).status_code == 403

    created = client.post("/api/classes", json={"name": "JSS1 Gold", "form_level": "JSS1"}, headers=headers(admin))
    assert created.status_code == 201
    duplicate = client.post("/api/classes", json={"name": "JSS1 Gold"}, headers=headers(admin))
    assert duplicate.status_code == 409

    subject = client.post(
        "/api/subjects",
        json={"class_id": school_class.id, "name": "Basic Science", "department": "Science"},
        headers=headers(admin),
    )
    assert subject.status_code == 201
    assert subject.json()["class_level"] == "JSS1"

    listed = client.get("/api/subjects", params={"class_id": school_class.id}).json()
    assert [item["name"] for item in listed] == ["Basic Science"]


def test_registration_subjects_fall_back_when_term_has_none(client, db, school_class):
    db.add_all(
        [
            Subject(name="Mathematics", class_id=school_class.id, class_level="JSS1", department="Science"),
            Subject(name="Physics", class_id=school_class.id, class_level="JSS1", department="Science", term="2nd Term"),
            Subject(name="Literature", class_id=school_class.id, class_level="JSS1", department="Arts"),
        ]
    )
    db.commit()

    termly = client.get("/api/students/subjects", params={"classLevel": "JSS1", "department": "Science", "term": "2nd Term"})
    assert [item["name"] for item in termly.json()["subjects"]] == ["Physics"]
    assert termly.json()["filtered"] is True

    fallback = client.get("/api/students/subjects", params={"classLevel": "JSS1", "department": "Science", "term": "3rd Term"})
    assert [item["name"] for item in fallback.json()["subjects"]] == ["Mathematics", "Physics"]

    everything = client.get("/api/students/subjects").json()
    assert everything["filtered"] is False
    assert len(everything["subjects"]) == 3


def test_generate_admission_number(client):
    response = client.post("/api/students/generate-admission", json={"classLevel": "SSS1", "department": "Commercial"})
    assert response.json() == {
        "success": True,
        "admissionNumber": f"ELBA/{YEAR}/S1C/001",
        "details": {
            "schoolCode": "ELBA",
            "year": YEAR,
            "classCode": "S1",
            "departmentCode": "C",
            "sequenceNumber": "001",
        },
    }


def test_register_student_creates_pending_record(client, db, school_class):
    response = client.post("/api/students/register", json=REGISTRATION)

    assert response.status_code == 201
    payload = response.json()
    assert payload["admissionNumber"] == f"ELBA/{YEAR}/J1S/001"
    assert payload["message"] == "Student registered successfully. Awaiting admin approval."

    student = db.get(Student, payload["studentId"])
    assert student.approved is False
    assert student.class_id == school_class.id
    assert student.guardian_name == "Mrs Okafor"
    assert db.get(User, payload["userId"]).email == "chidi@elbethel.test"

    second = client.post("/api/students/register", json={**REGISTRATION, "email": "ngozi@elbethel.test"})
    assert second.json()["admissionNumber"] == f"ELBA/{YEAR}/J1S/002"


def test_register_student_validation(client, db):
    assert client.post("/api/students/register", json=REGISTRATION).status_code == 201
    duplicate = client.post("/api/students/register", json=REGISTRATION)
    assert duplicate.status_code == 409

    bad_class = client.post("/api/students/register", json={**REGISTRATION, "email": "a@elbethel.test", "classLevel": "JSS9"})
    assert bad_class.status_code == 400
    assert bad_class.json()["error"] == "Unknown class level: JSS9"

    bad_dept = client.post("/api/students/register", json={**REGISTRATION, "email": "b@elbethel.test", "department": "Music"})
    assert bad_dept.status_code == 400


def test_registration_closed(client, db):
    db.query(SchoolSettings).one().student_registration_open = False
    db.commit()

    response = client.post("/api/students/register", json=REGISTRATION)
    assert response.status_code == 403
    assert response.json() == {"error": "Student registration is closed"}


def test_registration_surfaces_identity_errors(client, identity):
    identity.fail_with = "User already registered"
    response = client.post("/api/students/register", json=REGISTRATION)
    assert response.status_code == 400
    assert response.json()["error"] == "User already registered"


def test_registration_retries_when_the_admission_number_is_taken(client, db, monkeypatch):
    first = client.post("/api/students/register", json=REGISTRATION).json()
    taken = parse_admission_number(first["admissionNumber"])
    real_generate = student_service.generate_admission
    calls = []

    def racing_generate(db, **kwargs):
        calls.append(kwargs)
        # The first allocation loses the race to the registration above.
        return taken if len(calls) == 1 else real_generate(db, **kwargs)

    monkeypatch.setattr(student_service, "generate_admission", racing_generate)

    response = client.post("/api/students/register", json={**REGISTRATION, "email": "ngozi@elbethel.test"})

    assert response.status_code == 201
    assert response.json()["admissionNumber"] == f"ELBA/{YEAR}/J1S/002"
    assert len(calls) == 2
    assert db.query(Student).count() == 2


def test_registration_gives_up_after_repeated_conflicts(client, db, monkeypatch):
    taken = parse_admission_number(client.post("/api/students/register", json=REGISTRATION).json()["admissionNumber"])
    monkeypatch.setattr(student_service, "generate_admission", lambda db, **kwargs: taken)

    response = client.post("/api/students/register", json={**REGISTRATION, "email": "ngozi@elbethel.test"})

    assert response.status_code == 409
    assert response.json() == {"error": "Could not allocate a unique admission number"}
    assert db.query(User).filter(User.email == "ngozi@elbethel.test").count() == 0
