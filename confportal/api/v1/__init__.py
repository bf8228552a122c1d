"""
API v1 routes.
"""

from fastapi import APIRouter

from confportal.api.v1 import admin, attendees, auth, payments, receipts, submissions, verification

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])
router.include_router(attendees.router, prefix="/attendees", tags=["Attendees"])
router.include_router(receipts.router, prefix="/receipts", tags=["Receipts"])
router.include_router(verification.router, prefix="/verification", tags=["Verification"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
