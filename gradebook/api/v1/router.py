"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from gradebook.api.v1.endpoints import academic_calendar, assignments, audit, exams, grades

api_router = APIRouter()

# Academic calendar (years, semesters, grading periods)
api_router.include_router(
    academic_calendar.router,
    prefix="/academic-calendar",
    tags=["Academic Calendar"],
)

# Exams, question banks and attempts
api_router.include_router(
    exams.router,
    prefix="/exams",
    tags=["Exams"],
)

# Assignments and submissions
api_router.include_router(
    assignments.router,
    prefix="/assignments",
    tags=["Assignments"],
)

# Grade records, GPA and grade sheets
api_router.include_router(
    grades.router,
    prefix="/grades",
    tags=["Grades"],
)

# Audit log (read-only)
api_router.include_router(
    audit.router,
    prefix="/audit-logs",
    tags=["Audit"],
)
