from .admin import router as admin_router
from .auth import router as auth_router
from .progress import router as progress_router
from .quiz import router as quiz_router
from .teacher import router as teacher_router

routes = [
    auth_router,
    admin_router,
    teacher_router,
    quiz_router,
    progress_router,
]
