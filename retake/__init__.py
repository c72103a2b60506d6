
"""
retake - an always-on MIDI take recorder for practice.

Play anything on a MIDI keyboard and it is captured as the current take: the
first note (or a sustain pedal press) starts recording, ``s`` stops it, ``p``
plays it straight back out of the keyboard with the original timing, and
``e`` saves it as a Standard MIDI File.  Playing a new note during playback
cuts the playback off and starts a fresh take - there is only ever one take,
so the loop from playing to listening back is instant.

Pieces:

- :mod:`retake.session` - the capture / replay state machine
- :mod:`retake.take` - the event log of the current take
- :mod:`retake.replay` - cancellable, timer-driven replay on the asyncio loop
- :mod:`retake.encoder` - take to delta-timed MIDI track, no dangling notes
- :mod:`retake.export` - timestamped ``.mid`` file writing
- :mod:`retake.viewer` - full-screen sheet music PDFs with page-turn keys
- :mod:`retake.app` - devices, keyboard and OSC commands, shutdown

Minimal example:

    ```python
    import retake.app
    import retake.config

    retake.app.Looper(retake.config.load_config("retake.yaml")).run()
    ```

Package-level exports: ``Looper``, ``Session``, ``SessionState``, ``EventLog``, ``encode``.
"""

import retake.app
import retake.encoder
import retake.session
import retake.take


Looper = retake.app.Looper
Session = retake.session.Session
SessionState = retake.session.SessionState
EventLog = retake.take.EventLog
encode = retake.encoder.encode
