from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional
from .settings import settings


logger = logging.getLogger(__name__)


class ReportRenderer:
	"""Client for the external document renderer.

	The renderer takes a template name plus the report fields as JSON and
	answers with the finished document bytes.
	"""

	def __init__(self, base_url: Optional[str] = None, *, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self.base_url = base_url or settings.renderer_url
		if not self.base_url:
			raise ValueError("RENDERER_URL is not configured")
		self._client = httpx.AsyncClient(timeout=timeout or settings.renderer_timeout_seconds, transport=transport)

	async def render(self, template: str, fields: Dict[str, Any]) -> bytes:
		payload = {"template": template, "fields": fields}
		try:
			r = await self._client.post(self.base_url, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.error("renderer answered %s: %s", http_err.response.status_code, http_err.response.text[:500])
			raise RuntimeError(f"Renderer failed with status {http_err.response.status_code}") from http_err
		except httpx.RequestError as net_err:
			logger.error("unable to reach renderer at %s: %s", self.base_url, net_err)
			raise RuntimeError(f"Renderer unreachable: {net_err}") from net_err
		if not r.content:
			raise RuntimeError("Renderer returned an empty document")
		return r.content

	async def aclose(self) -> None:
		await self._client.aclose()
