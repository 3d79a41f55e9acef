# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Tests for the match controller, in single-player mode and against an
in-process ledger.
"""

import asyncio
import copy
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import InMemoryLedger
from salvo.board import CellState, Coordinate, Orientation, Placement
from salvo.config import DEFAULT_CONFIG
from salvo.errors import (
    AlreadyPlaced,
    AttackInProgress,
    ExternalServiceFailure,
    InvalidPlacement,
    NotWaiting,
    NotYourTurn,
    SessionNotFound,
)
from salvo.opponent import AIOpponent
from salvo.session import GameStatus, Role
from ledger.codec import WIRE_A_WON, decode_record
from ledger.controller import MatchController
from ledger.services import AttackTx, CreateGameTx, JoinGameTx


A_ID = b"\x0a" * 32
B_ID = b"\x0b" * 32
ORIGIN = Placement(0, 0, Orientation.HORIZONTAL)


def make_config(polling: bool = False, interval_ms: int = 10) -> dict:
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['polling']['enabled'] = polling
    config['polling']['interval_ms'] = interval_ms
    config['ai'].update(seed=3, min_delay_s=0.0, max_delay_s=0.0)
    return config


def ai_controller(delay: float = 0.0) -> MatchController:
    opponent = AIOpponent(seed=3, min_delay_s=delay, max_delay_s=delay)
    return MatchController(mode="ai", opponent=opponent, config=make_config())


def online_controller(ledger: InMemoryLedger, identity: bytes, polling: bool = False) -> MatchController:
    client = ledger.client(identity)
    return MatchController(
        mode="online",
        reader=client,
        writer=client,
        identity=identity,
        config=make_config(polling),
    )


async def start_online_game(ledger, polling_b: bool = False):
    """Player A creates a game, player B joins it, A catches up."""
    a = online_controller(ledger, A_ID)
    b = online_controller(ledger, B_ID, polling=polling_b)
    state = await a.create_game(ORIGIN)
    await b.join_game(state.session_id, ORIGIN)
    await a.refresh()
    return a, b


class TestConstruction:
    """Tests for controller construction."""

    def test_unknown_mode(self):
        """Test unknown modes are rejected."""
        with pytest.raises(ValueError):
            MatchController(mode="hotseat")

    def test_online_needs_ledger(self):
        """Test online mode requires ledger services and an identity."""
        with pytest.raises(ValueError):
            MatchController(mode="online")

    def test_initial_state(self):
        """Test a new controller has an empty session."""
        controller = ai_controller()
        assert controller.state.status is None
        assert controller.view.status is None
        assert not controller.attack_pending


class TestSinglePlayer:
    """Tests for games against the AI."""

    def test_create_and_start(self):
        """Test creating a game and letting the AI join."""

        async def scenario():
            controller = ai_controller()
            await controller.create_game(ORIGIN)
            assert controller.state.status == GameStatus.AWAITING_OPPONENT
            await controller.start_vs_ai()
            return controller

        controller = asyncio.run(scenario())
        state = controller.state
        assert state.status == GameStatus.ACTIVE
        assert state.local_role is Role.PLAYER_A
        assert state.commitment_a is not None
        assert state.commitment_b is not None
        assert controller.salt is not None
        assert controller.placement == ORIGIN
        # AI ship is hidden from the player
        assert CellState.SHIP not in controller.view.opponent_grid

    def test_invalid_placement(self):
        """Test an illegal placement leaves the session empty."""
        controller = ai_controller()
        with pytest.raises(InvalidPlacement):
            asyncio.run(controller.create_game(Placement(0, 2, Orientation.VERTICAL)))
        assert controller.state.status is None

    def test_create_twice(self):
        """Test a second game cannot be created without reset."""

        async def scenario():
            controller = ai_controller()
            await controller.create_game(ORIGIN)
            with pytest.raises(AlreadyPlaced):
                await controller.create_game(ORIGIN)

        asyncio.run(scenario())

    def test_start_without_game(self):
        """Test the AI cannot join before a game exists."""
        with pytest.raises(NotWaiting):
            asyncio.run(ai_controller().start_vs_ai())

    def test_attack_then_ai_replies(self):
        """Test the AI answers a player attack."""

        async def scenario():
            controller = ai_controller()
            await controller.create_game(ORIGIN)
            await controller.start_vs_ai()
            result = await controller.attack(Coordinate(4, 4))
            assert controller.state.turn is Role.PLAYER_B
            reply = await controller.wait_for_ai()
            return controller, result, reply

        controller, result, reply = asyncio.run(scenario())
        assert result.attacker is Role.PLAYER_A
        assert reply.attacker is Role.PLAYER_B
        assert controller.opponent.last_move == reply
        assert controller.state.turn is Role.PLAYER_A

    def test_attack_out_of_turn(self):
        """Test the player cannot attack while the AI is to move."""

        async def scenario():
            controller = ai_controller(delay=0.05)
            await controller.create_game(ORIGIN)
            await controller.start_vs_ai()
            await controller.attack((0, 4))
            with pytest.raises(NotYourTurn):
                await controller.attack((1, 4))
            await controller.close()

        asyncio.run(scenario())

    def test_attack_without_game(self):
        """Test attacking with no game in progress fails."""
        with pytest.raises(NotYourTurn):
            asyncio.run(ai_controller().attack((0, 0)))

    def test_full_game(self):
        """Test a game against the AI runs to completion."""

        async def scenario():
            controller = ai_controller()
            await controller.create_game(ORIGIN)
            await controller.start_vs_ai()
            for index in range(25):
                if controller.state.status != GameStatus.ACTIVE:
                    break
                await controller.attack(Coordinate.from_index(index))
                await controller.wait_for_ai()
            return controller

        controller = asyncio.run(scenario())
        state = controller.state
        assert state.status == GameStatus.FINISHED
        loser = state.winner.opponent
        assert (state.hits_a if loser is Role.PLAYER_A else state.hits_b) == 4

    def test_reset_cancels_ai(self):
        """Test a reset discards the pending AI move."""

        async def scenario():
            controller = ai_controller(delay=0.02)
            await controller.create_game(ORIGIN)
            await controller.start_vs_ai()
            await controller.attack((4, 4))
            controller.reset()
            await asyncio.sleep(0.05)
            return controller

        controller = asyncio.run(scenario())
        assert controller.state.status is None
        assert controller.opponent.last_move is None
        assert controller.salt is None

    def test_observers(self):
        """Test observers see transitions and can unsubscribe."""

        async def scenario():
            controller = ai_controller()
            seen = []
            unsubscribe = controller.subscribe(seen.append)
            await controller.create_game(ORIGIN)
            await controller.start_vs_ai()
            await controller.attack((4, 4))
            await controller.wait_for_ai()
            unsubscribe()
            controller.reset()
            return seen

        seen = asyncio.run(scenario())
        statuses = [state.status for state in seen]
        assert statuses == [
            GameStatus.AWAITING_OPPONENT,
            GameStatus.ACTIVE,
            GameStatus.ACTIVE,
            GameStatus.ACTIVE,
        ]
        assert seen[2].turn is Role.PLAYER_B
        assert seen[3].turn is Role.PLAYER_A

    def test_polling_unavailable(self):
        """Test polling is refused in single-player mode."""
        with pytest.raises(ValueError):
            ai_controller().polling_enabled(True)


class TestOnlineSetup:
    """Tests for creating and joining online games."""

    def test_create_game(self):
        """Test creating a game submits it to the ledger."""
        ledger = InMemoryLedger()

        async def scenario():
            a = online_controller(ledger, A_ID)
            return a, await a.create_game(ORIGIN)

        a, state = asyncio.run(scenario())
        assert isinstance(ledger.submitted[0], CreateGameTx)
        assert ledger.submitted[0].commitment == state.commitment_a

        remote = decode_record(ledger.read(state.session_id))
        assert remote.status == GameStatus.AWAITING_OPPONENT
        assert remote.identity(Role.PLAYER_A) == A_ID
        assert remote.commitment(Role.PLAYER_A) == state.commitment_a
        assert a.state.identity_a == A_ID

    def test_create_game_ledger_down(self):
        """Test a failed submission leaves the session empty."""
        ledger = InMemoryLedger()
        ledger.unavailable = True
        a = online_controller(ledger, A_ID)

        with pytest.raises(ExternalServiceFailure):
            asyncio.run(a.create_game(ORIGIN))
        assert a.state.status is None
        assert ledger.games == {}

    def test_join_game(self):
        """Test joining makes the local player B and activates the game."""
        ledger = InMemoryLedger()
        a, b = asyncio.run(start_online_game(ledger))

        assert isinstance(ledger.submitted[1], JoinGameTx)
        assert b.state.local_role is Role.PLAYER_B
        assert b.state.status == GameStatus.ACTIVE
        assert b.state.identity_a == A_ID
        assert b.state.commitment_a == a.state.commitment_a
        assert b.view.viewer is Role.PLAYER_B
        assert b.view.own_grid[:4] == (1, 1, 1, 1)
        assert CellState.SHIP not in b.view.opponent_grid

        # A picked up the join through refresh
        assert a.state.status == GameStatus.ACTIVE
        assert a.state.identity_b == B_ID
        assert a.view.my_turn

    def test_join_unknown_game(self):
        """Test joining a game the ledger does not know."""
        ledger = InMemoryLedger()
        b = online_controller(ledger, B_ID)
        with pytest.raises(SessionNotFound):
            asyncio.run(b.join_game(12345, ORIGIN))
        assert b.state.status is None

    def test_join_full_game(self):
        """Test a game that already has two players cannot be joined."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            c = online_controller(ledger, b"\x0c" * 32)
            with pytest.raises(NotWaiting):
                await c.join_game(a.state.session_id, ORIGIN)

        asyncio.run(scenario())


class TestOnlinePlay:
    """Tests for online attacks, stale reads and failures."""

    def test_full_game(self):
        """Test both players play through the ledger until A wins."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            for x in range(4):
                await a.attack((x, 0))
                await b.refresh()
                if b.state.status == GameStatus.ACTIVE:
                    await b.attack((x, 4))
                    await a.refresh()
            quiet = await a.refresh()
            return a, b, quiet

        a, b, quiet = asyncio.run(scenario())
        assert sum(isinstance(tx, AttackTx) for tx in ledger.submitted) == 7

        remote = decode_record(ledger.read(a.state.session_id))
        assert remote.game_status == WIRE_A_WON
        assert remote.current_turn == 2
        assert a.state.status == GameStatus.FINISHED
        assert a.view.won is True
        assert b.state.status == GameStatus.FINISHED
        assert b.view.won is False
        assert b.view.own_hits == 4
        assert a.state.turn is Role.PLAYER_A
        assert b.state.turn is Role.PLAYER_A
        assert quiet is False

    def test_stale_read_does_not_regress(self):
        """Test lagging snapshots never undo local progress."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            await a.attack((0, 0))

            ledger.lag = 1
            await a.refresh()
            lagged = a.state

            ledger.lag = 100
            await a.refresh()
            return lagged, a.state

        lagged, oldest = asyncio.run(scenario())
        for state in (lagged, oldest):
            assert state.status == GameStatus.ACTIVE
            assert state.grid_b[0] == CellState.HIT

    def test_rejected_attack_rolls_back(self):
        """Test a failed submission restores the pre-attack state."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            before = a.state
            ledger.unavailable = True
            with pytest.raises(ExternalServiceFailure):
                await a.attack((0, 0))
            return a, before

        a, before = asyncio.run(scenario())
        assert a.state == before
        assert a.view.my_turn
        assert not a.attack_pending

    def test_simulation_failure_carries_logs(self):
        """Test a ledger rule violation is reported with its logs."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            before = a.state
            ledger.force_status(a.state.session_id, WIRE_A_WON)
            with pytest.raises(ExternalServiceFailure) as excinfo:
                await a.attack((0, 0))
            return a, before, excinfo.value

        a, before, error = asyncio.run(scenario())
        assert "GameOver" in str(error)
        assert any("GameOver" in line for line in error.logs)
        assert a.state == before

    def test_attack_in_progress(self):
        """Test a second attack is refused while one is being submitted."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            ledger.gate = asyncio.Event()
            first = asyncio.ensure_future(a.attack((0, 0)))
            await asyncio.sleep(0)
            assert a.attack_pending
            with pytest.raises(AttackInProgress):
                await a.attack((1, 0))
            ledger.gate.set()
            return a, await first

        a, result = asyncio.run(scenario())
        assert result.hit
        assert not a.attack_pending
        assert a.state.turn is Role.PLAYER_B

    def test_no_rollback_after_session_moved_on(self):
        """Test a late failure does not undo newer state."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            ledger.gate = asyncio.Event()
            pending = asyncio.ensure_future(a.attack((0, 0)))
            # Let the submission get past simulation and park on the gate
            for _ in range(3):
                await asyncio.sleep(0)

            ledger.force_status(a.state.session_id, WIRE_A_WON)
            await a.refresh()
            ledger.unavailable = True
            ledger.gate.set()
            with pytest.raises(ExternalServiceFailure):
                await pending
            return a

        a = asyncio.run(scenario())
        assert a.state.status == GameStatus.FINISHED
        assert a.state.grid_b[0] == CellState.HIT

    def test_reset_discards_online_game(self):
        """Test reset returns to an empty session and stops polling."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger, polling_b=True)
            assert b.poller.running
            b.reset()
            running = b.poller.running
            await b.close()
            return b, running

        b, running = asyncio.run(scenario())
        assert not running
        assert b.state.status is None
        assert b.state.local_role is None


class TestOnlinePolling:
    """Tests for background polling."""

    def test_polling_picks_up_opponent_moves(self):
        """Test a polling player sees the opponent's attack."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger, polling_b=True)
            seen = []
            b.subscribe(seen.append)
            await a.attack((0, 0))
            await asyncio.sleep(0.1)
            await b.close()
            return b, seen

        b, seen = asyncio.run(scenario())
        assert b.state.turn is Role.PLAYER_B
        assert b.state.grid_b[0] == CellState.HIT
        assert len(seen) == 1

    def test_polling_errors_reported(self):
        """Test ledger outages reach error listeners and polling continues."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger, polling_b=True)
            errors = []
            b.subscribe_errors(errors.append)
            ledger.unavailable = True
            await asyncio.sleep(0.05)
            still_running = b.poller.running
            await b.close()
            return b, errors, still_running

        b, errors, still_running = asyncio.run(scenario())
        assert still_running
        assert errors
        assert all(isinstance(e, ExternalServiceFailure) for e in errors)
        assert b.state.status == GameStatus.ACTIVE

    def test_polling_stops_when_finished(self):
        """Test polling ends once the game is over."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger, polling_b=True)
            ledger.force_status(a.state.session_id, WIRE_A_WON)
            await asyncio.sleep(0.05)
            return b

        b = asyncio.run(scenario())
        assert b.state.status == GameStatus.FINISHED
        assert b.state.winner is Role.PLAYER_A
        assert not b.poller.running

    def test_polling_resumes_after_rejected_winning_shot(self):
        """Test rolling back a winning attack the ledger refused turns polling back on."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            a.polling_enabled(True, interval_ms=1000)
            for x in range(3):
                await a.attack((x, 0))
                await b.refresh()
                await b.attack((x, 4))
                await a.refresh()

            ledger.unavailable = True
            with pytest.raises(ExternalServiceFailure):
                await a.attack((3, 0))
            state, running = a.state, a.poller.running
            await a.close()
            return state, running

        state, running = asyncio.run(scenario())
        assert state.status == GameStatus.ACTIVE
        assert state.turn is Role.PLAYER_A
        assert state.grid_b[3] == CellState.SHIP
        assert running

    def test_manual_polling_toggle(self):
        """Test polling can be switched on and off explicitly."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger)
            assert not a.poller.running
            a.polling_enabled(True, interval_ms=20)
            on = a.poller.running
            a.polling_enabled(False)
            off = a.poller.running
            await a.close()
            return on, off, a.poller.interval_ms

        on, off, interval = asyncio.run(scenario())
        assert on and not off
        assert interval == 20

    def test_undecodable_snapshot_ignored(self):
        """Test a malformed record is skipped and the session is untouched."""
        ledger = InMemoryLedger()

        async def scenario():
            a, b = await start_online_game(ledger, polling_b=True)
            before = b.state
            ledger.versions[a.state.session_id].append(b"\x00" * 10)
            await asyncio.sleep(0.05)
            after = b.state
            await b.close()
            return before, after, b.poller.failures

        before, after, failures = asyncio.run(scenario())
        assert after == before
        assert failures >= 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
