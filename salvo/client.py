#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Interactive terminal client.

Plays a single-player game against the AI opponent through the
MatchController, the same path a graphical client would use.
"""

import argparse
import asyncio
import logging

from salvo.board import Orientation, Placement, format_coordinate, parse_coordinate, render_board
from salvo.commitment import commitment_hex
from salvo.config import load_config
from salvo.errors import GameError
from salvo.opponent import AIOpponent
from salvo.session import GameStatus
from ledger.controller import MatchController


HELP_TEXT = """
Commands:
  place <coordinate> [h|v]  - Place your ship (e.g., place A1 h)
  fire <coordinate>         - Fire at the enemy board (e.g., fire C3)
  <coordinate>              - Same as fire
  board                     - Show both boards
  status                    - Show game status
  help                      - Show this help
  quit                      - Exit game

Coordinate format: Letter (A-E) for the row + Number (1-5) for the column
Examples: A1, C3, E5
"""


def print_boards(controller) -> None:
    view = controller.view
    print("\nYour board:")
    print(render_board(view.own_grid))
    print("\nEnemy board:")
    print(render_board(view.opponent_grid))
    print()


def print_status(controller) -> None:
    view = controller.view
    print("\n--- Game Status ---")
    if view.status is None:
        print("No ship placed yet")
    else:
        print(f"Status: {view.status.name}")
        print(f"Turn: {'yours' if view.my_turn else 'AI'}")
        print(f"Hits on enemy ship: {view.opponent_hits}/4")
        print(f"Hits on your ship: {view.own_hits}/4")
    last = controller.opponent.last_move
    if last is not None:
        print(f"AI's last move: {format_coordinate(last.target)} ({last.outcome.value})")
    print()


def parse_placement(args) -> Placement:
    """Parse ``<coordinate> [h|v]`` into a Placement."""
    if not args:
        raise ValueError("Usage: place <coordinate> [h|v]")
    origin = parse_coordinate(args[0])
    orientation = Orientation.HORIZONTAL
    if len(args) > 1:
        flag = args[1].lower()
        if flag in ("v", "vertical"):
            orientation = Orientation.VERTICAL
        elif flag not in ("h", "horizontal"):
            raise ValueError(f"Invalid orientation '{args[1]}'. Use h or v.")
    return Placement(origin.x, origin.y, orientation)


async def play(config: dict, seed=None) -> None:
    opponent = AIOpponent(
        seed=seed if seed is not None else config['ai']['seed'],
        min_delay_s=config['ai']['min_delay_s'],
        max_delay_s=config['ai']['max_delay_s'],
    )
    controller = MatchController(mode="ai", opponent=opponent, config=config)
    loop = asyncio.get_running_loop()

    try:
        while True:
            try:
                user_input = await loop.run_in_executor(None, input, "> ")
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            parts = user_input.strip().split()
            if not parts:
                continue
            cmd, args = parts[0].lower(), parts[1:]

            if cmd in ("quit", "exit", "q"):
                print("Thanks for playing!")
                break

            if cmd == "help":
                print(HELP_TEXT)
                continue

            if cmd == "board":
                print_boards(controller)
                continue

            if cmd == "status":
                print_status(controller)
                continue

            try:
                if cmd == "place":
                    placement = parse_placement(args)
                    state = await controller.create_game(placement)
                    print(f"\nShip placed. Commitment: {commitment_hex(state.commitment_a)[:16]}...")
                    await controller.start_vs_ai()
                    print("The AI has placed its ship. Your move!")
                    print_boards(controller)
                    continue

                # Anything else is treated as a coordinate
                target = parse_coordinate(args[0] if cmd == "fire" and args else cmd)
                result = await controller.attack(target)
            except (GameError, ValueError) as e:
                print(f"Error: {e}")
                continue

            print(f"\nYou fired at {format_coordinate(result.target)}: {result.outcome.value.upper()}!")
            if controller.state.status == GameStatus.ACTIVE:
                print("AI is thinking...")
                ai_move = await controller.wait_for_ai()
                if ai_move is not None:
                    print(f"AI fired at {format_coordinate(ai_move.target)}: {ai_move.outcome.value.upper()}!")
            print_boards(controller)

            view = controller.view
            if view.status == GameStatus.FINISHED:
                print("=" * 50)
                print("  VICTORY! Enemy ship destroyed!" if view.won else "  DEFEAT! Your ship was destroyed.")
                print("=" * 50)
                break
    finally:
        await controller.close()


def main():
    """Run an interactive game against the AI."""
    parser = argparse.ArgumentParser(description="Play Salvo against the AI")
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for the AI opponent'
    )

    args = parser.parse_args()
    config = load_config(args.config)

    logging.basicConfig(
        level=getattr(logging, str(config['logging']['level']).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print("=" * 50)
    print("       SALVO")
    print("=" * 50)
    print("\nSink the enemy's 4-cell ship on a 5x5 grid to win!")
    print("Start with 'place <coordinate> [h|v]'. Type 'help' for commands.\n")

    asyncio.run(play(config, seed=args.seed))


if __name__ == "__main__":
    main()
