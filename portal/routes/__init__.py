from fastapi import APIRouter

from . import (
    academics,
    admin,
    assignments,
    attendance,
    auth,
    communication,
    dashboards,
    exams,
    payments,
    results,
    students,
    users,
)

api_router = APIRouter()

for module in (
    auth,
    users,
    admin,
    academics,
    students,
    payments,
    exams,
    attendance,
    results,
    assignments,
    communication,
    dashboards,
):
    api_router.include_router(module.router)
