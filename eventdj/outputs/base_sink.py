from abc import ABC, abstractmethod

from eventdj.clients.base import AudioHandle
from eventdj.music_logic.track import Track


class PlaybackSink(ABC):
    """
    Abstract base class for music playback.

    The core only issues commands; it never reads playback position back.
    """

    @abstractmethod
    def play(self, track: Track) -> None:
        """
        Start playing a track, replacing whatever is playing.

        Args:
            track: Track to play (audio is fetched from track.source_ref)
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """
        Stop music playback.
        """
        ...

    @abstractmethod
    def set_volume(self, level: float) -> None:
        """
        Set music volume.

        Args:
            level: 0.0 (silent) to 1.0 (full)
        """
        ...

    def close(self) -> None:
        """
        Release resources. Default: stop playback.
        """
        self.stop()


class SpeechOutput(ABC):
    """
    Abstract base class for spoken announcement playback.
    """

    @abstractmethod
    def play(self, handle: AudioHandle) -> None:
        """
        Play a clip, blocking until it ends or stop() is called.

        Raises:
            SynthesisError: If the clip cannot be played
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """
        Stop the active clip immediately. Safe to call from any thread.
        """
        ...
