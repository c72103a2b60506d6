"""Run the looper and print a line for every take as it finishes.

Each time a capture stops, the take is exported automatically, so a whole
practice session ends up on disk without pressing 'e'.
"""

import logging

import retake.app
import retake.config
import retake.session

logging.basicConfig(level=logging.INFO)

config = retake.config.load_config("retake.yaml")
looper = retake.app.Looper(config)


def on_state (old: retake.session.SessionState, new: retake.session.SessionState) -> None:

	if old is retake.session.SessionState.CAPTURING:
		take = looper.session.take
		print(f"Take finished: {len(take)} events, {take.duration_ms / 1000:.1f}s")
		looper.session.export()


def on_warning (text: str) -> None:
	print(f"! {text}")


looper.session.events.on("state", on_state)
looper.session.events.on("warning", on_warning)

if __name__ == "__main__":
	looper.run()
