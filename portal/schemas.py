import datetime as dt

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import PaymentStatus, UserRole


class CamelModel(BaseModel):
    """Request bodies the dashboard pages send in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- auth -------------------------------------------------------------------


class SignupRequest(BaseModel):
    email: str = Field(min_length=5, max_length=255)
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=2, max_length=255)
    role: UserRole
    phone: str | None = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=5, max_length=255)
    password: str = Field(min_length=1)


class OtpRequest(BaseModel):
    phone: str = Field(min_length=1)


class OtpVerifyRequest(BaseModel):
    phone: str = Field(min_length=1)
    code: str = Field(min_length=1)


# --- users ------------------------------------------------------------------


class UserOut(OrmModel):
    id: str
    email: str
    full_name: str
    role: UserRole
    phone: str | None = None
    qualification: str | None = None
    is_approved: bool
    created_at: dt.datetime


class UserUpdateRequest(BaseModel):
    role: UserRole | None = None
    is_approved: bool | None = None


class AdminUserCreateRequest(BaseModel):
    email: str = Field(min_length=5, max_length=255)
    full_name: str = Field(min_length=2, max_length=255)
    role: UserRole
    password: str = Field(min_length=8)
    phone: str | None = None
    class_id: str | None = None
    subject_id: str | None = None


class TeacherRegisterRequest(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    phone: str | None = None
    qualification: str | None = None
    assigned_classes: list[str] = Field(default_factory=list)
    assigned_subjects: list[str] = Field(default_factory=list)


class AuthResponse(BaseModel):
    message: str
    user: UserOut
    session: dict | None = None


# --- admin ------------------------------------------------------------------


class StudentApprovalRequest(CamelModel):
    student_id: str = Field(min_length=1)
    approved: bool = True
    note: str | None = None


class SettingsUpdateRequest(BaseModel):
    school_name: str | None = None
    school_code: str | None = None
    principal_email: str | None = None
    school_phone: str | None = None
    school_address: str | None = None
    current_session: str | None = None
    current_term: str | None = None
    result_release_enabled: bool | None = None
    student_registration_open: bool | None = None
    enable_payments: bool | None = None
    sms_notifications_enabled: bool | None = None


class SettingsOut(OrmModel):
    id: str
    school_name: str | None = None
    school_code: str | None = None
    principal_email: str | None = None
    school_phone: str | None = None
    school_address: str | None = None
    current_session: str | None = None
    current_term: str | None = None
    result_release_enabled: bool
    student_registration_open: bool
    enable_payments: bool
    sms_notifications_enabled: bool
    updated_at: dt.datetime


# --- classes & subjects -----------------------------------------------------


class ClassCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    level: str | None = None
    form_level: str | None = None


class ClassOut(OrmModel):
    id: str
    name: str
    level: str | None = None
    form_level: str | None = None


class SubjectCreateRequest(BaseModel):
    class_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=150)
    code: str | None = None
    class_level: str | None = None
    department: str | None = None
    term: str | None = None


class SubjectOut(OrmModel):
    id: str
    name: str
    code: str | None = None
    class_id: str | None = None
    class_level: str | None = None
    department: str | None = None
    term: str | None = None


# --- students ---------------------------------------------------------------


class GenerateAdmissionRequest(CamelModel):
    class_level: str = Field(min_length=1)
    department: str = Field(min_length=1)


class StudentRegisterRequest(CamelModel):
    email: str = Field(min_length=5, max_length=255)
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=2, max_length=255)
    phone: str | None = None
    class_level: str = Field(min_length=1)
    department: str = Field(min_length=1)
    guardian_name: str | None = None
    guardian_phone: str | None = None
    guardian_email: str | None = None


# --- payments ---------------------------------------------------------------


class PaymentSubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)
    amount: float
    receipt: str = ""
    paid_at: dt.datetime | None = None
    class_name: str | None = Field(default=None, alias="class")


class PaymentStatusRequest(BaseModel):
    id: str = Field(min_length=1)
    status: PaymentStatus


class FeeUpsertRequest(BaseModel):
    class_id: str = Field(min_length=1)
    amount: float
    currency: str = "NGN"


class FeeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: str
    class_name: str | None = Field(default=None, alias="class")
    amount: float
    currency: str


class PaymentRecordCreateRequest(CamelModel):
    student_id: str = Field(min_length=1)
    amount_due: float
    term: str | None = None
    session: str | None = None
    payment_method: str | None = None
    receipt_url: str | None = None
    paystack_reference: str | None = None


class PaymentRecordUpdateRequest(CamelModel):
    record_id: str = Field(min_length=1)
    amount_paid: float | None = None
    payment_status: str | None = None
    verified_by: str | None = None
    remarks: str | None = None


class PaymentRecordOut(OrmModel):
    id: str
    student_id: str
    term: str
    session: str
    amount_due: float
    amount_paid: float
    payment_method: str
    payment_status: str
    receipt_url: str | None = None
    paystack_reference: str | None = None
    remarks: str | None = None
    verified_by: str | None = None
    verified_at: dt.datetime | None = None
    payment_completed_at: dt.datetime | None = None
    proof_uploaded_at: dt.datetime | None = None
    created_at: dt.datetime


class PaystackInitializeRequest(CamelModel):
    student_id: str = Field(min_length=1)
    amount: float = Field(gt=0)
    email: str = Field(min_length=1)
    term: str | None = None
    session: str | None = None


class PaystackVerifyRequest(BaseModel):
    reference: str = Field(min_length=1)


# --- exams ------------------------------------------------------------------


class ExamSessionCreateRequest(CamelModel):
    title: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    subject_id: str = Field(min_length=1)
    teacher_id: str = Field(min_length=1)
    start_time: dt.datetime
    end_time: dt.datetime
    description: str | None = None
    term: str | None = None
    session: str | None = None
    duration_minutes: int | None = None
    total_marks: int | None = None
    passing_mark: int | None = None


class ExamSessionStatusRequest(CamelModel):
    session_id: str = Field(min_length=1)
    status: str = Field(pattern="^(draft|active|closed)$")


class ExamSessionOut(OrmModel):
    id: str
    title: str
    description: str | None = None
    class_id: str
    subject_id: str
    teacher_id: str
    term: str
    session: str
    start_time: dt.datetime
    end_time: dt.datetime
    duration_minutes: int
    total_marks: int
    passing_mark: int
    status: str
    created_at: dt.datetime


class ExamQuestionCreateRequest(CamelModel):
    exam_session_id: str = Field(min_length=1)
    question_number: int
    question_text: str = Field(min_length=1)
    correct_answer: str = Field(min_length=1)
    question_type: str | None = None
    option_a: str | None = None
    option_b: str | None = None
    option_c: str | None = None
    option_d: str | None = None
    marks: int | None = None
    explanation: str | None = None


class ExamQuestionPublic(OrmModel):
    """A question as shown to a student sitting the exam."""

    id: str
    exam_session_id: str
    question_number: int
    question_text: str
    question_type: str
    option_a: str | None = None
    option_b: str | None = None
    option_c: str | None = None
    option_d: str | None = None
    marks: int


class ExamQuestionOut(ExamQuestionPublic):
    correct_answer: str
    explanation: str | None = None


class AttemptCreateRequest(CamelModel):
    exam_session_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)


class AttemptUpdateRequest(CamelModel):
    attempt_id: str = Field(min_length=1)
    status: str = Field(pattern="^(in_progress|submitted)$")


class ExamAttemptOut(OrmModel):
    id: str
    exam_session_id: str
    student_id: str
    status: str
    started_at: dt.datetime
    submitted_at: dt.datetime | None = None
    score: int | None = None
    total_score: int | None = None
    total_marks: int | None = None
    auto_graded: bool
    graded: bool


class AnswerSubmitRequest(CamelModel):
    attempt_id: str = Field(min_length=1)
    question_id: str = Field(min_length=1)
    selected_answer: str | None = None
    time_spent_seconds: int | None = None


class StudentAnswerPublic(OrmModel):
    """A saved answer as echoed back to the student sitting the exam."""

    id: str
    exam_attempt_id: str
    question_id: str
    selected_answer: str | None = None
    time_spent_seconds: int | None = None
    answered_at: dt.datetime


class StudentAnswerOut(StudentAnswerPublic):
    is_correct: bool
    marks_obtained: int


class GradeAttemptRequest(CamelModel):
    attempt_id: str = Field(min_length=1)


class ExamResultCreateRequest(CamelModel):
    attempt_id: str = Field(min_length=1)
    exam_session_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)


class ExamResultUpdateRequest(CamelModel):
    result_id: str = Field(min_length=1)
    visible_to_student: bool | None = None
    can_download_pdf: bool | None = None
    released_by: str | None = None


class ExamResultOut(OrmModel):
    id: str
    exam_attempt_id: str
    exam_session_id: str
    student_id: str
    total_score: int
    total_marks: int
    percentage: float
    grade: str
    passed: bool
    visible_to_student: bool
    can_download_pdf: bool
    released_by: str | None = None
    released_at: dt.datetime | None = None
    created_at: dt.datetime


# --- attendance & results ---------------------------------------------------


class AttendanceRecordIn(BaseModel):
    student_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    attendance_date: dt.date
    status: str = Field(pattern="^(Present|Absent|Late|Excused)$")


class AttendanceMarkRequest(CamelModel):
    student_id: str | None = None
    class_id: str | None = None
    date: dt.date | None = None
    status: str | None = Field(default=None, pattern="^(Present|Absent|Late|Excused)$")
    records: list[AttendanceRecordIn] | None = None


class AttendanceOut(OrmModel):
    id: str
    student_id: str
    class_id: str
    attendance_date: dt.date
    status: str
    marked_by: str | None = None
    recorded_at: dt.datetime


class ResultCreateRequest(BaseModel):
    student_email: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    score: float
    term: str = Field(min_length=1)
    grade: str | None = None


class ResultOut(OrmModel):
    id: str
    student_email: str
    subject: str
    score: float
    grade: str
    term: str
    session: str | None = None
    student_id: str | None = None
    subject_id: str | None = None
    class_id: str | None = None
    teacher_id: str | None = None
    recorded_at: dt.datetime


class TeacherResultIn(CamelModel):
    student_id: str = Field(min_length=1)
    subject_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    term: str = Field(min_length=1)
    session: str = Field(min_length=1)
    score: float = Field(ge=0, le=100)


class TeacherResultsRequest(CamelModel):
    """One result as top-level fields, or many under ``results``."""

    student_id: str | None = None
    subject_id: str | None = None
    class_id: str | None = None
    term: str | None = None
    session: str | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    results: list[TeacherResultIn] | None = None


# --- assignments ------------------------------------------------------------


class AssignmentCreateRequest(CamelModel):
    class_id: str = Field(min_length=1)
    subject_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    due_date: dt.date | None = None
    max_score: int | None = Field(default=None, gt=0)
    created_by: str | None = None


class AssignmentOut(OrmModel):
    id: str
    class_id: str
    subject_id: str
    title: str
    description: str | None = None
    due_date: dt.date | None = None
    max_score: int
    created_by: str | None = None
    created_at: dt.datetime


class SubmissionCreateRequest(CamelModel):
    assignment_id: str = Field(min_length=1)
    student_id: str | None = None
    file_url: str | None = None
    content: str | None = None
    status: str | None = Field(default=None, pattern="^(draft|submitted)$")


class SubmissionOut(OrmModel):
    id: str
    assignment_id: str
    student_id: str
    file_url: str | None = None
    content: str | None = None
    status: str
    submitted_at: dt.datetime


# --- communication ----------------------------------------------------------


class AnnouncementCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = ""


class AnnouncementOut(OrmModel):
    id: str
    title: str
    body: str
    created_at: dt.datetime


class EventCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    date: dt.date
    description: str = ""
    type: str = "general"


class EventOut(OrmModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    title: str
    description: str
    date: dt.date = Field(validation_alias="event_date")
    type: str
    created_at: dt.datetime


class MessageCreateRequest(BaseModel):
    sender_email: str = Field(min_length=1)
    content: str = Field(min_length=1)
    recipient_role: str | None = None
    recipient_email: str | None = None
    class_name: str | None = None


class MessageOut(OrmModel):
    id: str
    sender_email: str
    recipient_role: str | None = None
    recipient_email: str | None = None
    class_name: str | None = None
    content: str
    created_at: dt.datetime


class SmsSendRequest(BaseModel):
    to: str = Field(min_length=1)
    message: str = Field(min_length=1)
