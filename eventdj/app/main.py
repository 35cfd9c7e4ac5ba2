"""
Command-line entry point for eventdj.

Usage:
    python -m eventdj --plan plan.json --guests guests.json [--catalog catalog.json] [--camera 0] [--dry-run]
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional, Tuple

from eventdj.app.logging_config import configure_logging
from eventdj.app.session import DJSession
from eventdj.app.settings import Settings, load_dotenv_simple
from eventdj.clients.audius import AudiusCatalogProvider
from eventdj.clients.elevenlabs import ElevenLabsSpeechEngine
from eventdj.clients.espeak import EspeakSpeechEngine
from eventdj.clients.face_recognition import HttpFaceRecognizer
from eventdj.clients.frames import CameraFrameProvider
from eventdj.clients.gemini_vision import GeminiVisionAnalyzer
from eventdj.dj_logic.event_plan import load_event_plan, load_guest_list
from eventdj.errors import CatalogError, RecognitionError
from eventdj.music_logic.catalog import TrackCatalog
from eventdj.outputs.ffmpeg_sink import FFmpegPlaybackSink
from eventdj.outputs.null_sink import NullSink, NullSpeechOutput
from eventdj.outputs.speech_output import FFmpegSpeechOutput

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eventdj", description="Mood-aware event DJ")
    parser.add_argument("--plan", help="Event plan JSON file")
    parser.add_argument("--guests", help="VIP guest list JSON file")
    parser.add_argument("--catalog", help="Track catalog JSON file (default: load from Audius)")
    parser.add_argument("--camera", default="0", help="Camera index or stream URL (default: 0)")
    parser.add_argument("--no-autoplay", action="store_true", help="Do not start music on startup")
    parser.add_argument("--audio-device", default=None, help="ALSA device for music and speech")
    parser.add_argument("--dry-run", action="store_true", help="Log music and speech instead of playing audio")
    return parser


def load_catalog(settings: Settings, path: Optional[str]) -> TrackCatalog:
    """Load the catalog from a file, or from Audius by the mood playlists' genres."""
    if path:
        return TrackCatalog.from_json_file(path)

    catalog = TrackCatalog()
    provider = AudiusCatalogProvider(base_url=settings.audius_base_url, app_name=settings.audius_app_name)
    genres = sorted({g for p in (catalog.playlist(m) for m in catalog.mood_names()) for g in p.preferred_genres})
    try:
        catalog.load_from(provider, genres=[None] + genres)
        catalog.assign_by_genre()
    finally:
        provider.close()
    return catalog


def _camera_source(value: str):
    return int(value) if value.isdigit() else value


def build_session(settings: Settings, args: argparse.Namespace) -> Tuple[DJSession, CameraFrameProvider]:
    """Create the vendor clients from settings and wire a DJSession.

    Returns:
        (session, camera); the caller releases the camera after stop()
    """
    catalog = load_catalog(settings, args.catalog)
    if not len(catalog):
        raise CatalogError("catalog is empty, nothing to play")
    plan = load_event_plan(args.plan) if args.plan else None
    guests = load_guest_list(args.guests) if args.guests else []

    camera = CameraFrameProvider(_camera_source(args.camera))
    recognizer = None
    if settings.face_service_url:
        recognizer = HttpFaceRecognizer(
            settings.face_service_url,
            token=settings.face_service_token,
            event_name=plan.name if plan else "",
            timeout=settings.vision_timeout_seconds,
        )

    if args.dry_run:
        speech_output, sink = NullSpeechOutput(), NullSink()
    else:
        speech_output = FFmpegSpeechOutput(device=args.audio_device)
        sink = FFmpegPlaybackSink(device=args.audio_device)

    session = DJSession(
        catalog=catalog,
        analyzer=GeminiVisionAnalyzer(
            settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.vision_timeout_seconds,
        ),
        frame_provider=camera,
        speech=ElevenLabsSpeechEngine(
            settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            timeout=settings.speech_timeout_seconds,
        ),
        fallback_speech=EspeakSpeechEngine(
            binary=settings.espeak_binary,
            voice=settings.espeak_voice,
            timeout=settings.speech_timeout_seconds,
        ),
        speech_output=speech_output,
        sink=sink,
        recognizer=recognizer,
        settings=settings,
    )
    session.initialize(plan, guests)
    if recognizer is not None and guests:
        try:
            recognizer.initialize(guests, event_type=plan.event_type if plan else "")
        except RecognitionError as e:
            logger.warning(f"[SESSION] Face service initialization failed: {e}")
    return session, camera


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv_simple()
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_path)

    logger.info("=" * 60)
    logger.info("eventdj - starting session")
    logger.info("=" * 60)

    try:
        session, camera = build_session(settings, args)
    except (OSError, KeyError, ValueError, CatalogError) as e:
        logger.error(f"[SESSION] Startup failed: {e}")
        return 1

    shutdown = threading.Event()

    def signal_handler(sig, frame):
        if shutdown.is_set():
            logger.debug("[SESSION] Shutdown already in progress, ignoring duplicate signal")
            return
        signal_name = "SIGTERM" if sig == signal.SIGTERM else "SIGINT"
        logger.info(f"[SESSION] Received {signal_name} - shutting down")
        shutdown.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        session.start(autoplay=not args.no_autoplay)
        logger.info("[SESSION] Running. Press Ctrl+C to stop.")
        while not shutdown.wait(0.5):
            pass
    finally:
        session.stop()
        camera.release()
        logger.info("[SESSION] Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
