"""
eventdj: a live-event AI DJ.

Senses crowd mood from a camera, picks and swaps tracks, speaks
announcements through a priority queue, greets VIP guests, and follows
an authored event timeline.

Package layout:
  - eventdj.app            : session wiring, settings, logging, CLI
  - eventdj.clock          : wall-clock and monotonic time source
  - eventdj.state          : read-only state snapshots (now playing, session)
  - eventdj.music_logic    : tracks, catalog, track selection
  - eventdj.dj_logic       : mood sampling, transitions, timeline, VIP watch
  - eventdj.broadcast_core : announcement requests and the announcement queue
  - eventdj.clients        : vision, face, speech, catalog vendors
  - eventdj.outputs        : playback sink and speech output
"""

__version__ = "1.0.0"
