# cli_driver.py
# This file is intended to be run to play the 2048 game on the CLI, by hand or
# with the Monte Carlo AI choosing every move.

import argparse
import logging
import random
from typing import List, Optional

import montecarlo
from core import DEFAULT_BOARD_SIZE, DIRECTION, GameProgressState
from errors import IllegalMove, InvalidConfiguration
from game_state import Game

logger = logging.getLogger(__name__)

KEY_MAPPING = {'W': DIRECTION.UP, 'A': DIRECTION.LEFT, 'S': DIRECTION.DOWN, 'D': DIRECTION.RIGHT}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="2048 - play by hand or watch the Monte Carlo AI")
    parser.add_argument('--size', type=int, default=DEFAULT_BOARD_SIZE,
                        help="Dimension of the N x N board (at least 4)")
    parser.add_argument('--autoplay', action='store_true',
                        help="Let the AI choose every move")
    parser.add_argument('--rollouts', type=int, default=montecarlo.DEFAULT_ROLLOUTS,
                        help="Rollout budget per AI decision")
    parser.add_argument('--seed', type=int, default=None,
                        help="Seed for tile spawns and AI rollouts (reproducible games)")
    parser.add_argument('--workers', type=int, default=None,
                        help="Number of AI worker processes (default: CPU count)")
    parser.add_argument('--executor', default='process', choices=sorted(montecarlo.EXECUTORS),
                        help="Pool kind for AI rollouts; processes sidestep the GIL")
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Logging verbosity")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        game = Game(args.size, rng=random.Random(args.seed))
    except InvalidConfiguration as e:
        print(f"Cannot start game: {e}")
        return 2

    display_board_state(game)
    if args.autoplay:
        autoplay(game, args.rollouts, seed=args.seed, max_workers=args.workers, executor=args.executor)
    else:
        play_interactive(game)

    # Game Ended
    print("\n--- Final Board State ---")
    display_board_state(game)
    if game.status == GameProgressState.GAME_WON:
        print(f"Congratulations! You reached the {game.win_tile} tile!")
    elif game.status == GameProgressState.GAME_LOST:
        print("No more moves possible. Better luck next time!")
    return 0


def play_interactive(game: Game) -> None:
    while game.status == GameProgressState.IN_PROGRESS:
        move_input = input("Enter move (W/A/S/D for Up/Left/Down/Right, Q to quit): ").strip().upper()

        if move_input == 'Q':
            print("Quitting game.")
            break

        chosen_direction = KEY_MAPPING.get(move_input)
        if not chosen_direction:
            print("Invalid input. Use W, A, S, D.")
            continue

        try:
            game.make_move(chosen_direction)
        except IllegalMove:
            legal = ", ".join(direction.name for direction in game.legal_moves())
            print(f"Move did not change the board. Try one of: {legal}")
            continue

        display_board_state(game)


def autoplay(game: Game, rollouts: int, seed: Optional[int] = None,
             max_workers: Optional[int] = None, max_moves: Optional[int] = None,
             executor: str = "process") -> int:
    """
    Lets the Monte Carlo AI play until the game ends (or max_moves is reached).
    Returns:
        int: The number of moves played.
    """
    moves_played = 0
    while game.status == GameProgressState.IN_PROGRESS:
        if max_moves is not None and moves_played >= max_moves:
            break
        # Each decision gets its own root seed derived from the game seed.
        decision_seed = None if seed is None else seed + moves_played
        direction = montecarlo.find_best_move(game, rollouts, seed=decision_seed,
                                             max_workers=max_workers, executor=executor)
        gained = game.make_move(direction)
        moves_played += 1
        logger.info("Move %d: %s (+%d, score %d)", moves_played, direction.name, gained, game.score)
        display_board_state(game, last_move=direction)
    return moves_played


# --- Display Function ---
def display_board_state(game: Game, last_move: Optional[DIRECTION] = None):
    """Prints the board, score, and game status to the console."""
    if last_move is not None:
        print(f"\nAI played: {last_move.name}")
    print(f"\nScore: {game.score}")
    status_message = {
        GameProgressState.IN_PROGRESS: f"Status: {game.status.name}",
        GameProgressState.GAME_WON: "YOU WON!",
        GameProgressState.GAME_LOST: "GAME OVER!"
    }
    print(status_message[game.status])

    for row in game.board:
        print("\t".join(map(str, row)))
    print("-" * (game.size * 6))  # Adjust width based on board size


if __name__ == "__main__":
    raise SystemExit(main())
