"""Tests for game sessions: seating, gating, and the save-on-finish hook."""

import asyncio
from unittest.mock import MagicMock

import pytest

from app.board import Symbol
from app.game import GameStatus
from app.session import (
    PlayerIdentity,
    SaveStatus,
    SeatOwnershipError,
    SessionError,
    SessionLockedError,
    SessionManager,
)
from app.storage import GameRecord, Stats

TOP_ROW_WIN = [(0, 0), (1, 1), (0, 1), (2, 2), (0, 2)]


def make_mock_sink(stats=None):
    """Create a sink double that records saves and returns fixed stats."""
    sink = MagicMock()
    sink.save_game_result = MagicMock(side_effect=lambda record: record)
    sink.get_stats = MagicMock(return_value=stats or Stats(total_games=1, wins=1, win_rate=100.0))
    return sink


ALICE = PlayerIdentity(id="u-alice", username="alice", nickname="Alice")
BOB = PlayerIdentity(id="u-bob", username="bob", nickname="Bob", is_guest=True)


async def ready_session(sink, board_size=3, win_length=3):
    manager = SessionManager(sink)
    session = manager.create_session(board_size, win_length)
    await session.seat(Symbol.X, ALICE)
    await session.seat(Symbol.O, BOB)
    return session


class TestSessionManager:
    def test_create_session(self):
        manager = SessionManager(make_mock_sink())
        session = manager.create_session(7, 9)
        assert len(session.session_id) == 6
        assert session.game.size == 7
        assert session.game.win_length == 7
        assert manager.get_session(session.session_id) is session

    def test_session_ids_are_unique(self):
        manager = SessionManager(make_mock_sink())
        first, second = manager.create_session(), manager.create_session()
        assert first.session_id != second.session_id
        assert len(manager.sessions) == 2

    def test_unknown_session(self):
        manager = SessionManager(make_mock_sink())
        with pytest.raises(KeyError):
            manager.get_session("nope")

    def test_close_session(self):
        manager = SessionManager(make_mock_sink())
        session = manager.create_session()
        assert manager.close_session(session.session_id) is session
        assert session.session_id not in manager.sessions
        assert manager.close_session(session.session_id) is None


class TestSeating:
    @pytest.mark.asyncio
    async def test_seat_loads_stats(self):
        sink = make_mock_sink()
        session = await ready_session(sink)
        assert session.ready is True
        assert session.stats[Symbol.X].wins == 1
        sink.get_stats.assert_any_call("u-alice")
        sink.get_stats.assert_any_call("u-bob")

    @pytest.mark.asyncio
    async def test_moves_gated_until_both_seated(self):
        manager = SessionManager(make_mock_sink())
        session = manager.create_session()
        await session.seat(Symbol.X, ALICE)
        outcome = await session.play(0, 0)
        assert outcome.accepted is False
        assert session.game.move_count == 0

    @pytest.mark.asyncio
    async def test_same_player_cannot_take_both_seats(self):
        manager = SessionManager(make_mock_sink())
        session = manager.create_session()
        await session.seat(Symbol.X, ALICE)
        with pytest.raises(SessionError):
            await session.seat(Symbol.O, ALICE)

    @pytest.mark.asyncio
    async def test_seats_locked_during_game(self):
        session = await ready_session(make_mock_sink())
        await session.play(0, 0)
        with pytest.raises(SessionLockedError):
            await session.unseat(Symbol.O, BOB.id)

    @pytest.mark.asyncio
    async def test_taken_seat_cannot_be_claimed(self):
        session = await ready_session(make_mock_sink())
        carol = PlayerIdentity(id="u-carol", username="carol", nickname="Carol")
        with pytest.raises(SessionError):
            await session.seat(Symbol.X, carol)
        assert session.players[Symbol.X] is ALICE

    @pytest.mark.asyncio
    async def test_only_holder_can_leave_seat(self):
        session = await ready_session(make_mock_sink())
        with pytest.raises(SeatOwnershipError):
            await session.unseat(Symbol.O, ALICE.id)
        assert session.players[Symbol.O] is BOB

        await session.unseat(Symbol.O, BOB.id)
        assert session.players[Symbol.O] is None
        assert session.ready is False

    @pytest.mark.asyncio
    async def test_stats_failure_is_tolerated(self):
        sink = make_mock_sink()
        sink.get_stats.side_effect = RuntimeError("db down")
        session = await ready_session(sink)
        assert session.ready is True
        assert session.stats[Symbol.X] is None


class TestSaveOnFinish:
    @pytest.mark.asyncio
    async def test_win_is_saved_once(self):
        sink = make_mock_sink()
        session = await ready_session(sink)
        for r, c in TOP_ROW_WIN:
            await session.play(r, c)
        # Late clicks on a finished game
        await session.play(2, 0)
        await session.play(2, 0)
        await session.wait_for_save()

        assert session.game.status is GameStatus.WON
        sink.save_game_result.assert_called_once()
        saved: GameRecord = sink.save_game_result.call_args[0][0]
        assert saved.board_size == 3
        assert saved.is_win is True
        assert saved.winner_id == "u-alice"
        assert saved.player_x_id == "u-alice"
        assert saved.player_o_id == "u-bob"
        assert saved.moves == 5
        assert saved.duration_seconds >= 0
        assert session.save_status is SaveStatus.SAVED

    @pytest.mark.asyncio
    async def test_draw_is_saved_without_winner(self):
        sink = make_mock_sink()
        session = await ready_session(sink)
        for r, c in [(0, 0), (0, 1), (0, 2), (1, 1), (1, 0), (1, 2), (2, 1), (2, 0), (2, 2)]:
            await session.play(r, c)
        await session.wait_for_save()

        saved = sink.save_game_result.call_args[0][0]
        assert saved.is_win is False
        assert saved.winner_id is None
        assert saved.moves == 9

    @pytest.mark.asyncio
    async def test_stats_refreshed_after_save(self):
        sink = make_mock_sink()
        session = await ready_session(sink)
        sink.get_stats.reset_mock()
        sink.get_stats.return_value = Stats(total_games=2, wins=2, win_rate=100.0)
        for r, c in TOP_ROW_WIN:
            await session.play(r, c)
        await session.wait_for_save()

        assert sink.get_stats.call_count == 2
        assert session.stats[Symbol.O].total_games == 2

    @pytest.mark.asyncio
    async def test_save_failure_keeps_result(self):
        sink = make_mock_sink()
        sink.save_game_result.side_effect = RuntimeError("db down")
        session = await ready_session(sink)
        for r, c in TOP_ROW_WIN:
            await session.play(r, c)
        await session.wait_for_save()

        assert session.save_status is SaveStatus.FAILED
        assert session.game.result == "X"

    @pytest.mark.asyncio
    async def test_reset_allows_next_game_to_save(self):
        sink = make_mock_sink()
        session = await ready_session(sink)
        for r, c in TOP_ROW_WIN:
            await session.play(r, c)
        await session.wait_for_save()
        await session.reset()
        assert session.save_status is SaveStatus.IDLE
        for r, c in TOP_ROW_WIN:
            await session.play(r, c)
        await session.wait_for_save()
        assert sink.save_game_result.call_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_moves_are_serialised(self):
        sink = make_mock_sink()
        session = await ready_session(sink)
        outcomes = await asyncio.gather(*(session.play(1, 1) for _ in range(5)))
        assert sum(o.accepted for o in outcomes) == 1
        assert session.game.move_count == 1


class TestReset:
    @pytest.mark.asyncio
    async def test_resize_before_first_move(self):
        session = await ready_session(make_mock_sink())
        await session.reset(7, 9)
        assert session.game.size == 7
        assert session.game.win_length == 7

    @pytest.mark.asyncio
    async def test_resize_locked_mid_game(self):
        session = await ready_session(make_mock_sink())
        await session.play(0, 0)
        with pytest.raises(SessionLockedError):
            await session.reset(5)
        assert session.game.move_count == 1

    @pytest.mark.asyncio
    async def test_plain_reset_mid_game(self):
        session = await ready_session(make_mock_sink())
        await session.play(0, 0)
        await session.reset()
        assert session.game.move_count == 0
        assert session.game.current_player is Symbol.X

    @pytest.mark.asyncio
    async def test_resize_after_game_over(self):
        session = await ready_session(make_mock_sink())
        for r, c in TOP_ROW_WIN:
            await session.play(r, c)
        await session.reset(5, 4)
        assert session.game.size == 5
        assert session.game.win_length == 4

    @pytest.mark.asyncio
    async def test_resending_same_settings_mid_game(self):
        manager = SessionManager(make_mock_sink())
        session = manager.create_session(4, 9)
        await session.seat(Symbol.X, ALICE)
        await session.seat(Symbol.O, BOB)
        await session.play(0, 0)
        await session.reset(4, 9)
        assert session.game.size == 4
        assert session.game.win_length == 4
        assert session.game.move_count == 0


class TestIdleSweep:
    def test_sweep_closes_idle_sessions(self):
        manager = SessionManager(make_mock_sink())
        idle, active = manager.create_session(), manager.create_session()
        idle.last_active -= 1000
        assert manager.sweep_idle(600) == [idle.session_id]
        assert idle.session_id not in manager.sessions
        assert active.session_id in manager.sessions

    @pytest.mark.asyncio
    async def test_sweep_keeps_session_with_pending_save(self):
        manager = SessionManager(make_mock_sink())
        session = manager.create_session()
        session.save_task = asyncio.get_running_loop().create_future()
        session.last_active -= 1000
        assert manager.sweep_idle(600) == []
        session.save_task.cancel()

    @pytest.mark.asyncio
    async def test_moves_keep_session_alive(self):
        sink = make_mock_sink()
        manager = SessionManager(sink)
        session = manager.create_session()
        await session.seat(Symbol.X, ALICE)
        await session.seat(Symbol.O, BOB)
        session.last_active -= 1000
        await session.play(1, 1)
        assert manager.sweep_idle(600) == []
