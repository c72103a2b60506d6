"""Replay timing benchmark.

Builds a synthetic take (a steady stream of notes) and replays it through the
replay scheduler, measuring how late each emission fires relative to its
ideal time.

Usage:
    python benchmarks/replay_jitter.py [--notes N] [--interval MS] [--no-spin-wait]
                                       [--device DEVICE_NAME] [--compare]

Options:
    --notes N           Number of notes in the take (default: 200)
    --interval MS       Milliseconds between note ons (default: 25)
    --no-spin-wait      Disable hybrid sleep+spin (loop timers only)
    --device NAME       Replay to this MIDI output (default: discard events)
    --compare           Run both modes and print a side-by-side comparison
"""

import argparse
import asyncio
import logging
import statistics

# Suppress replay logging during benchmark: we want clean output.
logging.basicConfig(level=logging.ERROR)

import retake.events
import retake.midi_utils
import retake.replay
import retake.sink
import retake.take


class _NullSink:

	def send (self, event: retake.events.DeviceEvent) -> None:
		pass


def _build_take (notes: int, interval_ms: int) -> retake.take.EventLog:

	"""A take of *notes* short notes, each released halfway to the next."""

	log = retake.take.EventLog()

	for i in range(notes):
		pitch = 48 + (i * 7) % 36
		log.append(retake.events.note_on(pitch, 90, offset_ms=i * interval_ms))
		log.append(retake.events.note_off(pitch, offset_ms=i * interval_ms + interval_ms // 2))

	log.close()
	return log


def _run_benchmark (notes: int, interval_ms: int, spin_wait: bool, device_name: str | None) -> list[float]:

	"""Replay the synthetic take and return per-emission lateness (seconds)."""

	lateness_log: list[float] = []

	async def _run () -> None:

		sink: retake.replay.EventSink = _NullSink()
		midi_sink = None

		if device_name is not None:
			name, port = retake.midi_utils.select_output_device(device_name)
			midi_sink = retake.sink.MidiSink(port, name)
			sink = midi_sink

		done = asyncio.Event()
		scheduler = retake.replay.ReplayScheduler(sink, spin_wait=spin_wait, _lateness_log=lateness_log)
		scheduler.start(_build_take(notes, interval_ms), lambda session: done.set())

		await done.wait()

		if midi_sink is not None:
			midi_sink.close()

	asyncio.run(_run())

	return lateness_log


def _print_report (lateness: list[float], notes: int, interval_ms: int, spin_wait: bool, label: str = "") -> None:

	if not lateness:
		print("No timing data collected.")
		return

	ms = [value * 1000 for value in lateness]

	mean_ms   = statistics.mean(ms)
	median_ms = statistics.median(ms)
	stdev_ms  = statistics.stdev(ms) if len(ms) > 1 else 0.0
	p95_ms    = sorted(ms)[int(len(ms) * 0.95)]
	p99_ms    = sorted(ms)[int(len(ms) * 0.99)]
	max_ms    = max(ms)

	mode = "spin-wait ON" if spin_wait else "spin-wait OFF"
	header = f"  {label}  " if label else ""

	print(f"\nReplay Jitter Benchmark{header}: {notes} notes every {interval_ms} ms ({mode})")
	print(f"{'─' * 62}")
	print(f"  Emissions timed : {len(ms)}")
	print(f"{'─' * 62}")
	print(f"  Mean lateness   : {mean_ms:>8.3f} ms")
	print(f"  Median lateness : {median_ms:>8.3f} ms")
	print(f"  Std deviation   : {stdev_ms:>8.3f} ms")
	print(f"  P95 lateness    : {p95_ms:>8.3f} ms")
	print(f"  P99 lateness    : {p99_ms:>8.3f} ms")
	print(f"  Max lateness    : {max_ms:>8.3f} ms")
	print(f"{'─' * 62}")

	if mean_ms < 0.1:
		rating = "Excellent  (sub-100 μs)"
	elif mean_ms < 0.5:
		rating = "Very good  (sub-500 μs, well below human perception)"
	elif mean_ms < 2.0:
		rating = "Good       (< 2 ms, at or below human perception threshold)"
	elif mean_ms < 5.0:
		rating = "Fair       (2-5 ms, audible on fast passages)"
	else:
		rating = "Poor       (> 5 ms, noticeable timing issues likely)"

	print(f"  Rating          : {rating}")
	print()


def main () -> None:

	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--notes",        type=int, default=200,  help="Notes in the take (default: 200)")
	parser.add_argument("--interval",     type=int, default=25,   help="Milliseconds between notes (default: 25)")
	parser.add_argument("--no-spin-wait", action="store_true",     help="Disable spin-wait (loop timers only)")
	parser.add_argument("--device",       type=str, default=None,  help="MIDI output device name")
	parser.add_argument("--compare",      action="store_true",     help="Run both modes and compare")
	args = parser.parse_args()

	if args.compare:
		print("\nRunning with spin-wait ON ...")
		spin = _run_benchmark(args.notes, args.interval, spin_wait=True, device_name=args.device)
		_print_report(spin, args.notes, args.interval, spin_wait=True, label="[spin-wait ON]")

		print("Running with spin-wait OFF ...")
		pure = _run_benchmark(args.notes, args.interval, spin_wait=False, device_name=args.device)
		_print_report(pure, args.notes, args.interval, spin_wait=False, label="[spin-wait OFF]")

	else:
		spin = not args.no_spin_wait
		lateness = _run_benchmark(args.notes, args.interval, spin_wait=spin, device_name=args.device)
		_print_report(lateness, args.notes, args.interval, spin_wait=spin)


if __name__ == "__main__":
	main()
