"""
Contract tests for the audio output path.

ffmpeg and aplay are never started: subprocess.Popen and the decoder/player
classes are patched.
"""

import io
import threading
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from eventdj.broadcast_core.ffmpeg_decoder import FFmpegDecoder, apply_gain
from eventdj.clients.base import AudioHandle
from eventdj.errors import SynthesisError
from eventdj.outputs.ffmpeg_sink import FFmpegPlaybackSink
from eventdj.outputs.null_sink import NullSink, NullSpeechOutput
from eventdj.outputs.speech_output import FFmpegSpeechOutput
from eventdj.tests.contracts.test_doubles import make_track


def _pcm(value, samples=4):
    return np.full((samples, 2), value, dtype=np.int16)


class TestGain:
    """Per-frame volume scaling for ducking."""

    def test_unity_gain_is_untouched(self):
        frame = _pcm(1000)
        assert apply_gain(frame, 1.0) is frame

    def test_duck_scales_samples(self):
        assert apply_gain(_pcm(1000), 0.3)[0, 0] == 300
        assert apply_gain(_pcm(-32768), 0.5)[0, 0] == -16384

    def test_negative_gain_is_silence(self):
        assert not apply_gain(_pcm(1000), -1.0).any()


class TestDecoder:
    """ffmpeg stdout becomes fixed-size int16 stereo frames."""

    def test_frames_and_padded_tail(self):
        frame_size = 4
        bytes_per_frame = frame_size * 2 * 2
        raw = np.arange(frame_size * 2 + 4, dtype=np.int16).tobytes()
        assert len(raw) == bytes_per_frame + 8

        proc = MagicMock()
        proc.stdout = io.BytesIO(raw)
        with patch("subprocess.Popen", return_value=proc) as popen:
            decoder = FFmpegDecoder("/music/track.mp3", frame_size=frame_size)
            frames = list(decoder.read_frames())

        args = popen.call_args[0][0]
        assert "-nostdin" in args
        assert args[args.index("-i") + 1] == "/music/track.mp3"
        assert [f.shape for f in frames] == [(frame_size, 2), (frame_size, 2)]
        assert frames[1][2:].sum() == 0, "tail must be padded with silence"
        assert decoder.proc is None

    def test_in_memory_source_reads_stdin(self):
        proc = MagicMock()
        proc.stdout = io.BytesIO(b"")
        with patch("subprocess.Popen", return_value=proc) as popen:
            decoder = FFmpegDecoder("ignored", data=b"ID3")
            decoder._feeder.join(1.0)
        args = popen.call_args[0][0]
        assert "-nostdin" not in args
        assert args[args.index("-i") + 1] == "pipe:0"
        proc.stdin.write.assert_called_once_with(b"ID3")


class TestSpeechOutput:
    """Clips play to the end; start failures become SynthesisError."""

    def test_plays_clip_to_end(self):
        decoder = MagicMock()
        decoder.read_frames.return_value = iter([_pcm(1), _pcm(2)])
        player = MagicMock()
        player.write.return_value = True
        with patch("eventdj.outputs.speech_output.FFmpegDecoder", return_value=decoder), \
                patch("eventdj.outputs.speech_output.PcmPlayer", return_value=player):
            FFmpegSpeechOutput().play(AudioHandle(b"clip", "audio/mpeg", "fake"))
        assert player.write.call_count == 2
        player.drain.assert_called_once()

    def test_player_start_failure(self):
        decoder = MagicMock()
        with patch("eventdj.outputs.speech_output.FFmpegDecoder", return_value=decoder), \
                patch("eventdj.outputs.speech_output.PcmPlayer", side_effect=OSError("no aplay")):
            with pytest.raises(SynthesisError):
                FFmpegSpeechOutput().play(AudioHandle(b"clip", "audio/mpeg", "fake"))
        decoder.kill.assert_called_once()


class TestPlaybackSink:
    """Music frames are written at the current volume."""

    def test_volume_applies_to_frames(self):
        decoder = MagicMock()
        decoder.read_frames.return_value = iter([_pcm(1000), _pcm(1000)])
        written = []
        drained = threading.Event()
        player = MagicMock()
        player.write.side_effect = lambda frame: written.append(frame.copy()) or True
        player.drain.side_effect = drained.set

        sink = FFmpegPlaybackSink()
        sink.set_volume(0.5)
        with patch("eventdj.outputs.ffmpeg_sink.FFmpegDecoder", return_value=decoder), \
                patch("eventdj.outputs.ffmpeg_sink.PcmPlayer", return_value=player):
            sink.play(make_track("a"))
            assert drained.wait(1.0)
        sink.stop()

        assert [int(f[0, 0]) for f in written] == [500, 500]

    def test_volume_is_clamped(self):
        sink = FFmpegPlaybackSink()
        sink.set_volume(3)
        assert sink._volume == 1.0
        sink.set_volume(-1)
        assert sink._volume == 0.0

    def test_decoder_start_failure_is_logged(self):
        with patch("eventdj.outputs.ffmpeg_sink.FFmpegDecoder", side_effect=OSError("no ffmpeg")):
            sink = FFmpegPlaybackSink()
            sink.play(make_track("a"))
            sink.stop()


class TestNullOutputs:
    """Dry-run outputs only record state."""

    def test_null_sink(self):
        sink = NullSink()
        track = make_track("a")
        sink.play(track)
        sink.set_volume(0.3)
        assert sink.current == track
        assert sink.volume == 0.3
        sink.close()
        assert sink.current is None

    def test_null_speech_output_stop_releases_hold(self):
        output = NullSpeechOutput(hold_seconds=5.0)
        worker = threading.Thread(target=output.play, args=(AudioHandle(b"x", "audio/wav", "fake"),))
        worker.start()
        for _ in range(100):
            output.stop()
            worker.join(0.01)
            if not worker.is_alive():
                break
        assert not worker.is_alive()
