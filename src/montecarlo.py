# montecarlo.py
# Move recommendation by pure random-rollout Monte Carlo search.
#
# Every legal move is scored by the average final score of many random games
# that start with that move. Rollouts run in batches on a concurrent.futures
# pool; each rollout draws from its own random.Random seeded from the root
# seed, the move and the rollout index, so results do not depend on the worker
# count or on the order in which batches finish.

import logging
import os
import random
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from core import DIRECTION
from errors import InvalidConfiguration, NoLegalMoves, SearchTimeout
from game_state import Game

logger = logging.getLogger(__name__)

DEFAULT_ROLLOUTS = 1000

EXECUTORS = {
    "thread": ThreadPoolExecutor,
    "process": ProcessPoolExecutor,
}

Batch = Tuple[DIRECTION, int, int]


@dataclass(frozen=True)
class MoveEstimate:
    """Aggregated rollout result for one candidate move."""
    direction: DIRECTION
    total_score: int
    rollouts: int

    @property
    def mean(self) -> float:
        return self.total_score / self.rollouts if self.rollouts else 0.0


def allocate_rollouts(rollout_budget: int, moves: Sequence[DIRECTION]) -> Dict[DIRECTION, int]:
    """
    Splits the rollout budget as evenly as possible across the candidate moves.
    The first ``budget % len(moves)`` moves, in the given (canonical) order,
    receive one extra rollout. Every candidate receives at least one rollout.
    Args:
        rollout_budget (int): Total number of rollouts.
        moves (Sequence[DIRECTION]): Candidate moves in canonical order.
    Returns:
        Dict[DIRECTION, int]: Number of rollouts per move.
    """
    base, remainder = divmod(rollout_budget, len(moves))
    return {
        direction: max(1, base + (1 if index < remainder else 0))
        for index, direction in enumerate(moves)
    }


def rollout_seed(root_seed: int, direction: DIRECTION, index: int) -> str:
    return f"{root_seed}:{direction.name}:{index}"


def play_out(snapshot: Game, first_move: DIRECTION, rng: random.Random) -> int:
    """
    Plays one random game on a copy of the snapshot.
    Args:
        snapshot (Game): The starting position; never modified.
        first_move (DIRECTION): The move committed to before random play.
        rng (random.Random): This rollout's private random stream.
    Returns:
        int: The final score of the random game.
    """
    game = snapshot.clone(rng)
    game.make_move(first_move)
    while not game.is_game_over():
        game.make_move(rng.choice(game.legal_moves()))
    return game.score


def _run_batch(snapshot: Game, direction: DIRECTION, root_seed: int, start: int, stop: int) -> Tuple[DIRECTION, int, int]:
    total = 0
    for index in range(start, stop):
        rng = random.Random(rollout_seed(root_seed, direction, index))
        total += play_out(snapshot, direction, rng)
    return direction, total, stop - start


def _plan_batches(allocation: Dict[DIRECTION, int], workers: int) -> List[Batch]:
    batches = []
    for direction, count in allocation.items():
        batch_size = max(1, -(-count // workers))
        for start in range(0, count, batch_size):
            batches.append((direction, start, min(start + batch_size, count)))
    return batches


def _run_pooled(snapshot: Game, batches: List[Batch], root_seed: int, workers: int,
                executor: str, timeout: Optional[float]):
    """
    Runs the batches on a pool.
    Returns:
        Tuple[list, set]: Results of the finished batches, and the moves that
                          had at least one batch left unfinished at the deadline.
    """
    try:
        pool_cls = EXECUTORS[executor]
    except KeyError:
        raise InvalidConfiguration(f"Unknown executor {executor!r}; expected one of {sorted(EXECUTORS)}.")

    pool = pool_cls(max_workers=workers)
    pending = set()
    try:
        futures = {
            pool.submit(_run_batch, snapshot, direction, root_seed, start, stop): direction
            for direction, start, stop in batches
        }
        done, pending = wait(futures, timeout=timeout)
    finally:
        # Abandoned batches are cancelled or left to finish in the background.
        pool.shutdown(wait=not pending, cancel_futures=True)

    abandoned = {futures[future] for future in pending}
    results = [future.result() for future in done if futures[future] not in abandoned]
    return results, abandoned


def _check_budget(rollout_budget: int) -> None:
    if not isinstance(rollout_budget, int) or isinstance(rollout_budget, bool) or rollout_budget <= 0:
        raise InvalidConfiguration(f"Rollout budget must be a positive integer, got {rollout_budget!r}.")


def evaluate_moves(game: Game, rollout_budget: int = DEFAULT_ROLLOUTS, *,
                   seed: Optional[int] = None, max_workers: Optional[int] = None,
                   executor: str = "thread", timeout: Optional[float] = None) -> Dict[DIRECTION, MoveEstimate]:
    """
    Runs random rollouts for every legal move of the game.
    Args:
        game (Game): The position to analyse; it is not modified.
        rollout_budget (int): Total number of rollouts across all moves.
        seed (int, optional): Root seed. Drawn from the OS entropy pool when omitted.
        max_workers (int, optional): Pool size; defaults to os.cpu_count().
        executor (str): "thread" or "process".
        timeout (float, optional): Seconds to wait for the rollouts. Moves whose
                                   rollouts did not all finish are left out.
    Returns:
        Dict[DIRECTION, MoveEstimate]: Estimates in canonical move order.
    Raises:
        InvalidConfiguration: For a non-positive budget, worker count or an unknown executor.
        NoLegalMoves: If the game is over.
        SearchTimeout: If no move finished its rollouts within the timeout.
    """
    _check_budget(rollout_budget)
    moves = game.legal_moves()
    if game.is_game_over() or not moves:
        raise NoLegalMoves(f"No legal move to evaluate (status {game.status.name}).")

    workers = max_workers if max_workers is not None else (os.cpu_count() or 1)
    if workers < 1:
        raise InvalidConfiguration(f"Worker count must be positive, got {workers!r}.")
    if seed is None:
        seed = random.SystemRandom().getrandbits(64)

    allocation = allocate_rollouts(rollout_budget, moves)
    snapshot = game.clone()
    batches = _plan_batches(allocation, workers)

    if workers == 1 and timeout is None:
        results = [_run_batch(snapshot, direction, seed, start, stop) for direction, start, stop in batches]
        abandoned = set()
    else:
        results, abandoned = _run_pooled(snapshot, batches, seed, workers, executor, timeout)

    totals = dict.fromkeys(allocation, 0)
    counts = dict.fromkeys(allocation, 0)
    for direction, score_sum, count in results:
        totals[direction] += score_sum
        counts[direction] += count

    estimates = {
        direction: MoveEstimate(direction, totals[direction], counts[direction])
        for direction in moves
        if direction not in abandoned
    }
    if abandoned:
        logger.warning("Rollouts timed out for %s; excluded from the estimate",
                       ", ".join(sorted(direction.name for direction in abandoned)))
    if not estimates:
        raise SearchTimeout(f"No move finished its rollouts within {timeout} seconds.")
    return estimates


def select_best(estimates: Dict[DIRECTION, MoveEstimate]) -> MoveEstimate:
    """
    Picks the estimate with the strictly highest mean score.
    Means are compared exactly by cross multiplication; ties go to the move
    listed first in canonical order (UP, DOWN, LEFT, RIGHT).
    """
    best = None
    for direction in DIRECTION:
        estimate = estimates.get(direction)
        if estimate is None:
            continue
        if best is None or estimate.total_score * best.rollouts > best.total_score * estimate.rollouts:
            best = estimate
    return best


def find_best_move(game: Game, rollout_budget: int = DEFAULT_ROLLOUTS, *,
                   seed: Optional[int] = None, max_workers: Optional[int] = None,
                   executor: str = "thread", timeout: Optional[float] = None) -> DIRECTION:
    """
    Recommends the legal move with the best average rollout score.
    A game with a single legal move gets that move without any rollout.
    Args:
        game (Game): The position to analyse; it is not modified.
        rollout_budget (int): Total number of rollouts across all moves.
        seed, max_workers, executor, timeout: See evaluate_moves.
    Returns:
        DIRECTION: The recommended move.
    Raises:
        InvalidConfiguration: For a non-positive budget.
        NoLegalMoves: If the game is over.
        SearchTimeout: If no move finished its rollouts within the timeout.
    """
    _check_budget(rollout_budget)
    moves = game.legal_moves()
    if game.is_game_over() or not moves:
        raise NoLegalMoves(f"No legal move to recommend (status {game.status.name}).")
    if len(moves) == 1:
        return moves[0]

    estimates = evaluate_moves(game, rollout_budget, seed=seed, max_workers=max_workers,
                               executor=executor, timeout=timeout)
    best = select_best(estimates)
    logger.debug("Best move %s (mean %.1f over %d rollouts); candidates: %s",
                 best.direction.name, best.mean, best.rollouts,
                 ", ".join(f"{e.direction.name}={e.mean:.1f}" for e in estimates.values()))
    return best.direction
