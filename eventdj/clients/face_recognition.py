"""
HTTP face recognition client for eventdj.

Talks to a face recognition service with `initialize` and `recognize`
endpoints under one base URL. The service reports recognized faces by
guest id or by name; names are resolved against the guest list here.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
import numpy as np

from eventdj.clients.base import FaceMatch, FaceRecognizer
from eventdj.clients.frames import encode_jpeg_base64
from eventdj.dj_logic.event_plan import VIPGuest
from eventdj.errors import RecognitionError

logger = logging.getLogger(__name__)


class HttpFaceRecognizer(FaceRecognizer):
    """Face recognition over a JSON service."""

    def __init__(self, base_url: Optional[str], token: Optional[str] = None,
                 event_name: str = "", timeout: float = 15.0,
                 client: Optional[httpx.Client] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.token = token
        self.event_name = event_name
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.base_url:
            raise RecognitionError("FACE_SERVICE_URL is not set")
        try:
            response = self._client.post(
                f"{self.base_url}/{endpoint}",
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise RecognitionError(f"face service {endpoint} failed: {e}") from e

        if response.status_code >= 400:
            raise RecognitionError(f"face service {endpoint} error: {response.status_code} - {response.text[:200]}")
        try:
            payload = response.json()
        except ValueError as e:
            raise RecognitionError(f"face service {endpoint} returned invalid JSON") from e
        if not isinstance(payload, dict) or payload.get("success") is False:
            error = payload.get("error") if isinstance(payload, dict) else payload
            raise RecognitionError(f"face service {endpoint} reported failure: {error}")
        return payload

    def initialize(self, guests: Sequence[VIPGuest], event_type: str = "") -> Dict[str, Any]:
        """
        Register the guest roster with the service.

        Returns:
            The service's reply payload

        Raises:
            RecognitionError: On service failure
        """
        body = {
            "eventName": self.event_name,
            "eventType": event_type,
            "vipGuests": [
                {"id": g.id, "name": g.name, "role": g.role, "imageUrl": g.reference_image}
                for g in guests
            ],
        }
        payload = self._post("initialize", body)
        logger.info(f"[FACE] Service initialized with {len(guests)} guests")
        return payload

    def recognize(self, frame: np.ndarray, guests: Sequence[VIPGuest]) -> List[FaceMatch]:
        try:
            image_b64 = encode_jpeg_base64(frame)
        except ValueError as e:
            raise RecognitionError(str(e)) from e

        payload = self._post("recognize", {"imageData": image_b64})
        by_name = {g.name.lower(): g.id for g in guests}
        known_ids = {g.id for g in guests}

        matches = []
        for face in payload.get("faces") or payload.get("matches") or []:
            guest_id = face.get("guestId") or face.get("personId")
            if guest_id is None and face.get("name"):
                guest_id = by_name.get(str(face["name"]).lower())
            if guest_id is None or guest_id not in known_ids:
                logger.debug(f"[FACE] Ignoring unknown face {face!r}")
                continue
            try:
                confidence = float(face.get("confidence", 0.0))
            except (TypeError, ValueError):
                continue
            matches.append(FaceMatch(guest_id=guest_id, confidence=confidence))
        return matches

    def close(self) -> None:
        self._client.close()
