"""
Settings for eventdj.

Configuration comes from environment variables, optionally seeded from an
env file. Variables already present in the environment always win over
the file.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

SYSTEM_ENV_FILE = "/etc/eventdj/eventdj.env"
DEV_ENV_FILE = ".env"
DEFAULT_LOG_PATH = "/var/log/eventdj/eventdj.log"


def load_dotenv_simple(dotenv_path: Optional[str] = None, environ=None) -> Optional[str]:
    """
    Minimal .env loader.

    - Supports KEY=VALUE lines
    - Ignores comments (#) and blank lines
    - Strips matching surrounding quotes, no escapes
    - Never overrides a variable that is already set

    Args:
        dotenv_path: File to load (default: EVENTDJ_ENV_FILE, then the
            system file, then ./.env)
        environ: Mapping to populate (default: os.environ)

    Returns:
        The path that was loaded, or None if no file was found
    """
    environ = os.environ if environ is None else environ
    if dotenv_path is None:
        candidates = [environ.get("EVENTDJ_ENV_FILE"), SYSTEM_ENV_FILE, DEV_ENV_FILE]
        dotenv_path = next((p for p in candidates if p and os.path.exists(p)), None)
    if not dotenv_path or not os.path.exists(dotenv_path):
        return None

    try:
        with open(dotenv_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                    value = value[1:-1]
                if key and value and key not in environ:
                    environ[key] = value
    except OSError as e:
        logger.warning(f"[SETTINGS] Could not read env file {dotenv_path}: {e}")
        return None
    return dotenv_path


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[SETTINGS] {key}={raw!r} is not a number, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration."""
    log_path: Optional[str] = DEFAULT_LOG_PATH
    log_level: str = "INFO"

    mood_min_interval_seconds: float = 30.0
    mood_heartbeat_seconds: float = 5.0
    high_energy_threshold: float = 80.0
    low_energy_threshold: float = 50.0
    energy_bpm_split: float = 130.0

    transition_settle_seconds: float = 4.0
    transition_announce_wait_seconds: float = 10.0
    announcement_cooldown_seconds: float = 1.0
    duck_volume: float = 0.3
    normal_volume: float = 1.0

    timeline_poll_seconds: float = 0.5
    timeline_tick_seconds: float = 60.0
    moment_cue_delay_seconds: float = 5.0
    vip_suppression_seconds: float = 300.0
    face_confidence_threshold: float = 75.0
    face_poll_seconds: float = 2.0

    vision_timeout_seconds: float = 15.0
    speech_timeout_seconds: float = 20.0

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-lite"
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: Optional[str] = None
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    espeak_binary: str = "espeak-ng"
    espeak_voice: str = "en"
    face_service_url: Optional[str] = None
    face_service_token: Optional[str] = None
    audius_app_name: str = "eventdj"
    audius_base_url: str = "https://discoveryprovider.audius.co"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment.

        Unparseable numbers fall back to their defaults with a warning.
        Missing vendor keys stay None.
        """
        env = os.environ if environ is None else environ
        d = cls()
        return cls(
            log_path=env.get("EVENTDJ_LOG_PATH", d.log_path) or None,
            log_level=env.get("EVENTDJ_LOG_LEVEL", d.log_level).upper(),
            mood_min_interval_seconds=_float(env, "MOOD_MIN_INTERVAL_SECONDS", d.mood_min_interval_seconds),
            mood_heartbeat_seconds=_float(env, "MOOD_HEARTBEAT_SECONDS", d.mood_heartbeat_seconds),
            high_energy_threshold=_float(env, "HIGH_ENERGY_THRESHOLD", d.high_energy_threshold),
            low_energy_threshold=_float(env, "LOW_ENERGY_THRESHOLD", d.low_energy_threshold),
            energy_bpm_split=_float(env, "ENERGY_BPM_SPLIT", d.energy_bpm_split),
            transition_settle_seconds=_float(env, "TRANSITION_SETTLE_SECONDS", d.transition_settle_seconds),
            transition_announce_wait_seconds=_float(
                env, "TRANSITION_ANNOUNCE_WAIT_SECONDS", d.transition_announce_wait_seconds),
            announcement_cooldown_seconds=_float(
                env, "ANNOUNCEMENT_COOLDOWN_SECONDS", d.announcement_cooldown_seconds),
            duck_volume=_float(env, "DUCK_VOLUME", d.duck_volume),
            normal_volume=_float(env, "NORMAL_VOLUME", d.normal_volume),
            timeline_poll_seconds=_float(env, "TIMELINE_POLL_SECONDS", d.timeline_poll_seconds),
            timeline_tick_seconds=_float(env, "TIMELINE_TICK_SECONDS", d.timeline_tick_seconds),
            moment_cue_delay_seconds=_float(env, "MOMENT_CUE_DELAY_SECONDS", d.moment_cue_delay_seconds),
            vip_suppression_seconds=_float(env, "VIP_SUPPRESSION_SECONDS", d.vip_suppression_seconds),
            face_confidence_threshold=_float(env, "FACE_CONFIDENCE_THRESHOLD", d.face_confidence_threshold),
            face_poll_seconds=_float(env, "FACE_POLL_SECONDS", d.face_poll_seconds),
            vision_timeout_seconds=_float(env, "VISION_TIMEOUT_SECONDS", d.vision_timeout_seconds),
            speech_timeout_seconds=_float(env, "SPEECH_TIMEOUT_SECONDS", d.speech_timeout_seconds),
            gemini_api_key=env.get("GEMINI_API_KEY") or None,
            gemini_model=env.get("GEMINI_MODEL") or d.gemini_model,
            elevenlabs_api_key=env.get("ELEVENLABS_API_KEY") or None,
            elevenlabs_voice_id=env.get("ELEVENLABS_VOICE_ID") or None,
            elevenlabs_model_id=env.get("ELEVENLABS_MODEL_ID") or d.elevenlabs_model_id,
            espeak_binary=env.get("ESPEAK_BINARY") or d.espeak_binary,
            espeak_voice=env.get("ESPEAK_VOICE") or d.espeak_voice,
            face_service_url=env.get("FACE_SERVICE_URL") or None,
            face_service_token=env.get("FACE_SERVICE_TOKEN") or None,
            audius_app_name=env.get("AUDIUS_APP_NAME") or d.audius_app_name,
            audius_base_url=env.get("AUDIUS_BASE_URL") or d.audius_base_url,
        )

    def missing_vendor_keys(self) -> list:
        """Names of unset vendor credentials, for a startup warning."""
        missing = []
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.elevenlabs_api_key:
            missing.append("ELEVENLABS_API_KEY")
        if not self.face_service_url:
            missing.append("FACE_SERVICE_URL")
        return missing
