from fastapi import APIRouter

from .endpoints import (
    assignment_router,
    auth_router,
    course_router,
    module_router,
    progress_router,
    student_router,
    topic_router,
    trainer_router,
)

api_router = APIRouter()

api_router.include_router(auth_router.router, prefix="/auth", tags=["Auth"])
api_router.include_router(course_router.router, prefix="/courses", tags=["Courses"])
api_router.include_router(module_router.router, prefix="/modules", tags=["Modules"])
api_router.include_router(topic_router.router, prefix="/topics", tags=["Topics"])
api_router.include_router(assignment_router.router, tags=["Assignments"])
api_router.include_router(progress_router.router, tags=["Progress"])
api_router.include_router(student_router.router, prefix="/students", tags=["Students"])
api_router.include_router(trainer_router.router, prefix="/trainers", tags=["Trainers"])
