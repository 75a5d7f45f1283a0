from fastapi import APIRouter

from ..settings import settings


router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
	return {
		"status": "ok",
		"school": settings.school_name,
		"renderer_configured": bool(settings.renderer_url),
		"mail_configured": bool(settings.mail_api_key),
	}
