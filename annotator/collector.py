# annotator/collector.py
"""Optional remote collector that receives markers as they are confirmed."""
import asyncio
import logging
import uuid
from typing import Any, Dict, List, Literal, Optional

import aiohttp
import orjson
from pydantic import BaseModel, ConfigDict, Field

from .models import MarkerAnnotation

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:4747"
POLL_SECONDS = 2.0

AnnotationStatus = Literal["pending", "acknowledged", "resolved", "dismissed"]


class CollectorUnavailable(Exception):
    pass


class NotConnectedError(Exception):
    pass


class CollectorStatus(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    connected: bool = False
    session_id: Optional[str] = Field(None, alias="sessionId")
    last_error: Optional[str] = Field(None, alias="lastError")


class CollectorAnnotation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    session_id: str = Field(alias="sessionId")
    url: Optional[str] = None
    target: Dict[str, Any] = Field(default_factory=dict)
    intent: str = ""
    timestamp: int = 0
    status: AnnotationStatus = "pending"


class CollectorClient:
    def __init__(self, base_url: str = DEFAULT_URL, poll_seconds: float = POLL_SECONDS, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.poll_seconds = poll_seconds
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.status = CollectorStatus()
        self.annotations: List[CollectorAnnotation] = []
        self._http: Optional[aiohttp.ClientSession] = None
        self._poller: Optional[asyncio.Task] = None

    def _session(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=self.timeout)
        return self._http

    def _update(self, **changes):
        self.status = self.status.model_copy(update=changes)

    async def _get_json(self, path: str) -> Any:
        async with self._session().get(f"{self.base_url}{path}") as response:
            if response.status != 200:
                text = await response.text()
                raise aiohttp.ClientResponseError(
                    response.request_info, (), status=response.status, message=text
                )
            body = await response.read()
            return orjson.loads(body) if body else None

    async def check_connection(self) -> bool:
        try:
            await self._get_json("/status")
        except (aiohttp.ClientError, asyncio.TimeoutError, orjson.JSONDecodeError) as e:
            logger.debug("Collector status check failed: %s", e)
            self._update(connected=False, last_error="Could not connect to collector")
            return False
        self._update(connected=True, last_error=None)
        return True

    async def connect(self, existing_session_id: Optional[str] = None) -> str:
        if not await self.check_connection():
            raise CollectorUnavailable(f"Collector not reachable at {self.base_url}")
        session_id = existing_session_id or str(uuid.uuid4())
        self._update(connected=True, session_id=session_id)
        self._start_polling(session_id)
        logger.info("Connected to collector %s (session %s)", self.base_url, session_id)
        return session_id

    async def submit(self, marker: MarkerAnnotation, url: Optional[str] = None) -> CollectorAnnotation:
        if not self.status.connected or not self.status.session_id:
            raise NotConnectedError("Not connected to collector")
        annotation = CollectorAnnotation(
            id=str(uuid.uuid4()),
            session_id=self.status.session_id,
            url=url,
            target=marker.target.summary(),
            intent=marker.intent,
            timestamp=marker.timestamp,
        )
        body = orjson.dumps(annotation.model_dump(by_alias=True, mode="json"))
        async with self._session().post(
            f"{self.base_url}/annotations",
            data=body,
            headers={"Content-Type": "application/json"},
        ) as response:
            response.raise_for_status()
        # optimistic: the next poll replaces the list with the server's view
        self.annotations = self.annotations + [annotation]
        return annotation

    # ---- polling ----

    def _start_polling(self, session_id: str):
        if self._poller is not None:
            self._poller.cancel()
        self._poller = asyncio.get_running_loop().create_task(self._poll(session_id))

    async def poll_once(self, session_id: str):
        try:
            data = await self._get_json(f"/sessions/{session_id}/annotations")
            received = [CollectorAnnotation.model_validate(item) for item in data or []]
        except (aiohttp.ClientError, asyncio.TimeoutError, orjson.JSONDecodeError, ValueError) as e:
            # keep the last known annotations
            logger.debug("Collector poll failed: %s", e)
            if self.status.connected:
                logger.warning("Lost connection to collector %s", self.base_url)
            self._update(connected=False, last_error=str(e) or type(e).__name__)
            return
        if not self.status.connected:
            self._update(connected=True, last_error=None)
        if received:
            self.annotations = received

    async def _poll(self, session_id: str):
        while True:
            await self.poll_once(session_id)
            await asyncio.sleep(self.poll_seconds)

    async def stop(self):
        if self._poller is not None:
            self._poller.cancel()
            try:
                await self._poller
            except asyncio.CancelledError:
                pass
            self._poller = None
        if self._http is not None:
            await self._http.close()
            self._http = None
