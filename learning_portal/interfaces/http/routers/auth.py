from fastapi import APIRouter, BackgroundTasks, Depends, status

from ....application.dto import RegisterStudentInput
from ....application.use_cases.login import LoginStudent
from ....application.use_cases.register_student import RegisterStudent
from ....domain.entities import Student
from ....infrastructure.mailer import SmtpMailer
from ....infrastructure.repositories import StudentRepository
from ....infrastructure.security import PasswordHasher, TokenService
from ..authz import require_student
from ..deps import get_hasher, get_mailer, get_students, get_tokens
from ..schemas import LoginReq, RegisterReq, StudentBrief, StudentOut, envelope

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterReq,
    background: BackgroundTasks,
    students: StudentRepository = Depends(get_students),
    tokens: TokenService = Depends(get_tokens),
    mailer: SmtpMailer = Depends(get_mailer),
):
    uc = RegisterStudent(repo=students, tokens=tokens)
    student, token = uc.execute(RegisterStudentInput(
        full_name=payload.full_name,
        email=payload.email,
        whatsapp_number=payload.whatsapp_number,
        password=payload.password,
        track=payload.track,
    ))
    background.add_task(mailer.send_welcome, student)
    return envelope(
        message="Registration successful",
        token=token,
        user=StudentBrief.model_validate(student),
    )


@router.post("/login")
def login(
    payload: LoginReq,
    students: StudentRepository = Depends(get_students),
    hasher: PasswordHasher = Depends(get_hasher),
    tokens: TokenService = Depends(get_tokens),
):
    uc = LoginStudent(repo=students, hasher=hasher, tokens=tokens)
    student, token = uc.execute(payload.email, payload.password)
    return envelope(message="Login successful", token=token, user=StudentBrief.model_validate(student))


@router.get("/me")
def me(student: Student = Depends(require_student)):
    return envelope(StudentOut.model_validate(student))
