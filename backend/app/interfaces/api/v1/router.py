from fastapi import APIRouter

from app.interfaces.api.v1.routes.admin_bank_transfers import router as admin_bank_transfers_router
from app.interfaces.api.v1.routes.admin_payment_requests import router as admin_payment_requests_router
from app.interfaces.api.v1.routes.admin_rate_limits import router as admin_rate_limits_router
from app.interfaces.api.v1.routes.auth import router as auth_router
from app.interfaces.api.v1.routes.discounts import router as discounts_router
from app.interfaces.api.v1.routes.payments import router as payments_router
from app.interfaces.api.v1.routes.ping import router as ping_router
from app.interfaces.api.v1.routes.scholarships import router as scholarships_router
from app.interfaces.api.v1.routes.student_auth import router as student_auth_router
from app.interfaces.api.v1.routes.student_payment_requests import router as student_payment_requests_router
from app.interfaces.api.v1.routes.student_tuitions import router as student_tuitions_router
from app.interfaces.api.v1.routes.tuitions import router as tuitions_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router)
api_router.include_router(student_auth_router)
api_router.include_router(student_payment_requests_router)
api_router.include_router(student_tuitions_router)
api_router.include_router(tuitions_router)
api_router.include_router(payments_router)
api_router.include_router(scholarships_router)
api_router.include_router(discounts_router)
api_router.include_router(admin_payment_requests_router)
api_router.include_router(admin_bank_transfers_router)
api_router.include_router(admin_rate_limits_router)
api_router.include_router(ping_router)
