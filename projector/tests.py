"""Tests for the projector rotation, slides and websocket consumer."""

import asyncio
import os
import shutil
import tempfile
from io import StringIO
from unittest import mock

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_console.settings")

import django

django.setup()

from asgiref.sync import async_to_sync, sync_to_async
from channels.testing import WebsocketCommunicator
from django.core.management import call_command
from django.test import SimpleTestCase, override_settings

from festival.snapshot import build_snapshot
from festival.tests.fixtures import FESTIVAL_PAYLOAD, festival_payload, write_payload

from .consumers import ProjectorConsumer
from .presentation import DisplayMode, ManualClock, PresentationScheduler, RevealStep
from .slides import SlideDeck
from .utils import notify_snapshot_changed

INTERVAL = 15000
DELAY = 1500

RESULTS = {result["id"]: result for result in FESTIVAL_PAYLOAD["results"]}


def song_last_payload():
    return festival_payload(results=[RESULTS["r-essay"], RESULTS["r-song"]])


def dance_declared_payload():
    dance = dict(RESULTS["r-dance"], status="Declared")
    return festival_payload(results=[RESULTS["r-essay"], RESULTS["r-song"], dance])


def visible_positions(frame):
    return [winner["position"] for winner in frame.content["winners"] if winner["visible"]]


class PresentationSchedulerTests(SimpleTestCase):
    def setUp(self):
        self.clock = ManualClock()
        self.frames = []
        self.scheduler = PresentationScheduler(
            self.clock, self.frames.append, interval_ms=INTERVAL, reveal_delay_ms=DELAY
        )

    def start_with(self, payload, mode=DisplayMode.RESULT):
        self.scheduler.load(build_snapshot(payload))
        self.scheduler.start(mode)

    def test_reveal_discloses_third_then_second_then_champion(self):
        self.start_with(song_last_payload())
        self.assertEqual(len(self.frames), 1)
        first = self.frames[0]
        self.assertEqual((first.mode, first.reveal_step), (DisplayMode.RESULT, RevealStep.HIDDEN))
        self.assertEqual(first.content["resultId"], "r-song")
        self.assertEqual(visible_positions(first), [])
        self.assertIsNone(first.content["winners"][0]["name"])

        self.clock.advance(DELAY - 1)
        self.assertEqual(len(self.frames), 1)
        self.clock.advance(1)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.THIRD)
        self.assertEqual(visible_positions(self.frames[-1]), [3])

        self.clock.advance(DELAY)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.SECOND)
        self.assertEqual(visible_positions(self.frames[-1]), [2, 3])

        self.clock.advance(2 * DELAY - 1)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.SECOND)
        self.clock.advance(1)
        champion = self.frames[-1]
        self.assertEqual(champion.reveal_step, RevealStep.CHAMPION)
        self.assertEqual(visible_positions(champion), [1, 2, 3])
        self.assertEqual(champion.content["winners"][0]["name"], "Anu")
        self.assertEqual(self.clock.now(), 4 * DELAY)
        self.assertEqual(self.clock.pending, 1)

    def test_rotation_cycles_through_every_mode(self):
        self.start_with(song_last_payload())
        self.clock.advance(4 * INTERVAL)
        entries = [frame.mode for frame in self.frames if frame.reveal_step == RevealStep.HIDDEN]
        self.assertEqual(
            entries,
            [
                DisplayMode.RESULT,
                DisplayMode.LEADERBOARD,
                DisplayMode.STATS,
                DisplayMode.UPCOMING,
                DisplayMode.RESULT,
            ],
        )
        self.assertEqual(self.frames[-1].content["slide"], "result")

    def test_start_at_any_mode(self):
        self.start_with(song_last_payload(), DisplayMode.UPCOMING)
        self.assertEqual(self.frames[-1].mode, DisplayMode.UPCOMING)
        self.assertEqual(self.clock.pending, 1)
        self.clock.advance(INTERVAL)
        self.assertEqual(self.frames[-1].mode, DisplayMode.RESULT)

    def test_changed_result_cancels_stale_reveal(self):
        self.start_with(song_last_payload())
        self.clock.advance(2 * DELAY)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.SECOND)

        self.scheduler.load(build_snapshot(dance_declared_payload()))
        reset = self.frames[-1]
        self.assertEqual((reset.content["resultId"], reset.reveal_step), ("r-dance", RevealStep.HIDDEN))
        self.assertEqual(self.clock.pending, 2)

        marker = len(self.frames)
        self.clock.advance(4 * DELAY)
        later = [(frame.content["resultId"], frame.reveal_step) for frame in self.frames[marker:]]
        self.assertEqual(
            later,
            [
                ("r-dance", RevealStep.THIRD),
                ("r-dance", RevealStep.SECOND),
                ("r-dance", RevealStep.CHAMPION),
            ],
        )
        self.assertNotIn(
            ("r-song", RevealStep.CHAMPION),
            [(frame.content.get("resultId"), frame.reveal_step) for frame in self.frames],
        )

    def test_same_result_keeps_reveal_progress(self):
        self.start_with(song_last_payload())
        self.clock.advance(DELAY)
        self.scheduler.load(build_snapshot(song_last_payload()))
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.THIRD)
        self.clock.advance(DELAY)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.SECOND)

    def test_pause_cancels_timers_and_resume_restarts_interval(self):
        self.start_with(song_last_payload())
        self.clock.advance(2000)
        self.scheduler.pause()
        self.assertTrue(self.frames[-1].paused)
        self.assertEqual(self.clock.pending, 0)

        count = len(self.frames)
        self.clock.advance(60000)
        self.assertEqual(len(self.frames), count)

        self.scheduler.resume()
        resumed = self.frames[-1]
        self.assertFalse(resumed.paused)
        self.assertEqual(resumed.reveal_step, RevealStep.THIRD)

        self.clock.advance(DELAY)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.SECOND)
        self.clock.advance(2 * DELAY)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.CHAMPION)

        self.clock.advance(INTERVAL - 3 * DELAY - 1)
        self.assertEqual(self.frames[-1].mode, DisplayMode.RESULT)
        self.clock.advance(1)
        self.assertEqual(self.frames[-1].mode, DisplayMode.LEADERBOARD)

    def test_navigation_restarts_the_interval(self):
        self.start_with(song_last_payload())
        self.clock.advance(5000)
        self.scheduler.advance()
        self.assertEqual(self.frames[-1].mode, DisplayMode.LEADERBOARD)
        self.assertEqual(self.clock.pending, 1)

        self.clock.advance(INTERVAL - 1)
        self.assertEqual(self.frames[-1].mode, DisplayMode.LEADERBOARD)
        self.clock.advance(1)
        self.assertEqual(self.frames[-1].mode, DisplayMode.STATS)

        self.scheduler.previous()
        self.assertEqual(self.frames[-1].mode, DisplayMode.LEADERBOARD)
        self.scheduler.previous()
        self.assertEqual(self.frames[-1].mode, DisplayMode.RESULT)
        self.assertEqual(self.frames[-1].reveal_step, RevealStep.HIDDEN)
        self.scheduler.jump_to(DisplayMode.UPCOMING)
        self.assertEqual(self.frames[-1].mode, DisplayMode.UPCOMING)

    def test_navigation_while_paused_stays_paused(self):
        self.start_with(song_last_payload())
        self.scheduler.pause()
        self.scheduler.advance()
        frame = self.frames[-1]
        self.assertEqual((frame.mode, frame.paused), (DisplayMode.LEADERBOARD, True))
        self.assertEqual(self.clock.pending, 0)

    def test_no_declared_result_falls_back_to_statistics(self):
        self.start_with(festival_payload(results=[RESULTS["r-dance"]]))
        frame = self.frames[-1]
        self.assertEqual(frame.mode, DisplayMode.RESULT)
        self.assertEqual(frame.content["slide"], "stats")
        self.assertTrue(frame.content["fallback"])
        self.assertEqual(self.clock.pending, 1)

        self.clock.advance(INTERVAL)
        self.assertEqual(len(self.frames), 2)
        self.assertEqual(self.frames[-1].mode, DisplayMode.LEADERBOARD)

    def test_absent_snapshot_emits_nothing(self):
        self.scheduler.start()
        self.assertEqual(self.frames, [])
        self.assertEqual(self.clock.pending, 0)

        self.scheduler.load(build_snapshot(song_last_payload()))
        self.assertEqual(len(self.frames), 1)
        self.assertEqual(self.clock.pending, 2)

        self.scheduler.load(None)
        self.assertEqual(self.clock.pending, 0)
        self.clock.advance(INTERVAL)
        self.assertEqual(len(self.frames), 1)

    def test_stop_cancels_everything(self):
        self.start_with(song_last_payload())
        self.scheduler.stop()
        self.assertEqual(self.clock.pending, 0)
        self.clock.advance(2 * INTERVAL)
        self.assertEqual(len(self.frames), 1)
        self.scheduler.advance()
        self.assertEqual(len(self.frames), 1)

    def test_frame_serialises_for_the_websocket(self):
        self.start_with(song_last_payload(), DisplayMode.STATS)
        payload = self.frames[-1].as_dict()
        self.assertEqual(payload["type"], "frame")
        self.assertEqual(payload["mode"], "stats")
        self.assertEqual(payload["revealStep"], 0)
        self.assertEqual(payload["content"]["stats"]["declared"], 2)


class SlideDeckTests(SimpleTestCase):
    def setUp(self):
        self.snapshot = build_snapshot(festival_payload())

    def test_upcoming_slide_skips_orphans_and_honours_limit(self):
        slide = SlideDeck(upcoming_limit=2).upcoming_slide(self.snapshot)
        self.assertEqual([event["item"] for event in slide["events"]], ["Song", "Essay"])
        slide = SlideDeck(upcoming_limit=6).upcoming_slide(self.snapshot)
        self.assertEqual([event["item"] for event in slide["events"]], ["Song", "Essay", "Group Dance"])

    def test_leaderboard_slide_carries_point_race(self):
        slide = SlideDeck(race_limit=1).leaderboard_slide(self.snapshot)
        self.assertEqual([row["team"] for row in slide["standings"]], ["Xavier House", "Yellow House", "Zeta"])
        self.assertEqual(slide["race"]["baselineCount"], 1)
        self.assertEqual(slide["race"]["steps"][0]["item"], "Essay")

    def test_stats_slide(self):
        slide = SlideDeck().stats_slide(self.snapshot)
        self.assertEqual(slide["heading"], "Arts Fest 2025")
        self.assertEqual([topper["name"] for topper in slide["toppers"]], ["Anu", "Dev"])

    def test_group_result_names_the_party(self):
        slide = SlideDeck().result_slide(build_snapshot(dance_declared_payload()), RevealStep.CHAMPION)
        self.assertEqual(slide["itemType"], "Group")
        self.assertEqual(slide["winners"][0]["name"], "Anu & Party")


@override_settings(PROJECTOR_SLIDE_INTERVAL_MS=600000, PROJECTOR_REVEAL_DELAY_MS=600000)
class ProjectorConsumerTests(SimpleTestCase):
    def setUp(self):
        self.directory = tempfile.mkdtemp(prefix="projector-")
        self.addCleanup(shutil.rmtree, self.directory, True)
        self.path = write_payload(song_last_payload(), self.directory)
        override = override_settings(FESTIVAL_SNAPSHOT_PATH=self.path)
        override.enable()
        self.addCleanup(override.disable)

    def test_controls_drive_the_display(self):
        async_to_sync(self._exercise_controls)()

    async def _exercise_controls(self):
        communicator = WebsocketCommunicator(ProjectorConsumer.as_asgi(), "/ws/festival/projector/")
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        frame = await communicator.receive_json_from()
        self.assertEqual((frame["mode"], frame["revealStep"]), ("result", 0))
        self.assertEqual(frame["content"]["resultId"], "r-song")

        await communicator.send_json_to({"action": "next"})
        self.assertEqual((await communicator.receive_json_from())["mode"], "leaderboard")

        await communicator.send_json_to({"action": "jump", "mode": "upcoming"})
        self.assertEqual((await communicator.receive_json_from())["mode"], "upcoming")

        await communicator.send_json_to({"action": "previous"})
        self.assertEqual((await communicator.receive_json_from())["mode"], "stats")

        await communicator.send_json_to({"action": "pause"})
        self.assertTrue((await communicator.receive_json_from())["paused"])
        await communicator.send_json_to({"action": "resume"})
        self.assertFalse((await communicator.receive_json_from())["paused"])

        await communicator.send_json_to({"action": "jump", "mode": "credits"})
        self.assertEqual((await communicator.receive_json_from())["type"], "error")
        await communicator.send_json_to({"action": "dance"})
        self.assertEqual((await communicator.receive_json_from())["type"], "error")

        await communicator.disconnect()

    def test_snapshot_change_reloads_data(self):
        async_to_sync(self._exercise_reload)()

    async def _exercise_reload(self):
        communicator = WebsocketCommunicator(ProjectorConsumer.as_asgi(), "/ws/festival/projector/")
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        self.assertEqual((await communicator.receive_json_from())["content"]["resultId"], "r-song")

        write_payload(dance_declared_payload(), self.directory)
        sent = await sync_to_async(notify_snapshot_changed)()
        self.assertTrue(sent)

        frame = await communicator.receive_json_from()
        self.assertEqual((frame["content"]["resultId"], frame["revealStep"]), ("r-dance", 0))

        await communicator.disconnect()

    def test_missing_snapshot_sends_nothing(self):
        async_to_sync(self._exercise_missing)()

    async def _exercise_missing(self):
        os.remove(self.path)
        communicator = WebsocketCommunicator(ProjectorConsumer.as_asgi(), "/ws/festival/projector/")
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        self.assertTrue(await communicator.receive_nothing(timeout=0.2))
        await communicator.disconnect()


class ProjectorPumpTests(SimpleTestCase):
    def make_consumer(self):
        consumer = ProjectorConsumer()
        consumer.channel_name = "projector.test"
        consumer.channel_layer = mock.Mock(group_discard=mock.AsyncMock())
        consumer.scheduler = mock.Mock()
        return consumer

    def test_failed_send_is_logged_and_stops_the_rotation(self):
        consumer = self.make_consumer()
        consumer.send_json = mock.AsyncMock(side_effect=RuntimeError("socket closed"))

        async def pump_one_frame():
            consumer.outbox = asyncio.Queue()
            consumer.outbox.put_nowait(mock.Mock(as_dict=mock.Mock(return_value={"mode": "result"})))
            await asyncio.wait_for(consumer._pump(), timeout=1)

        with self.assertLogs("projector.consumers", level="ERROR"):
            async_to_sync(pump_one_frame)()
        consumer.scheduler.stop.assert_called_once_with()

    def test_disconnect_waits_for_the_pump(self):
        consumer = self.make_consumer()

        async def connect_and_disconnect():
            consumer.outbox = asyncio.Queue()
            consumer.pump = asyncio.ensure_future(consumer._pump())
            await asyncio.sleep(0)
            await consumer.disconnect(1000)
            return consumer.pump

        pump = async_to_sync(connect_and_disconnect)()
        self.assertTrue(pump.cancelled())
        consumer.scheduler.stop.assert_called_once_with()
        consumer.channel_layer.group_discard.assert_awaited_once_with("festival_projector", "projector.test")


class ProjectorRefreshCommandTests(SimpleTestCase):
    def test_broadcasts_to_projectors(self):
        out = StringIO()
        call_command("projector_refresh", stdout=out)
        self.assertIn("Projectors notified.", out.getvalue())
