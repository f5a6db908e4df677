import sys

from sqlalchemy.exc import SQLAlchemyError

from expectedwordle.config_loader import ConfigError, get_abs_path, load_config, parse_cli_args
from expectedwordle.backend.errors import CacheWriteError, InvalidPatternError, InvalidWordError, MissingSeedError
from expectedwordle.backend.helpers import get_pattern_matrix, get_words, pattern_to_str, validate_pattern
from expectedwordle.backend.cache import ResultStore
from expectedwordle.backend.core import Precomputer, lookup_guess
from expectedwordle.backend.messenger import ConsoleMessenger

def seed(config: dict, store: ResultStore, messenger: ConsoleMessenger) -> int:
    words_config = config['words']
    words = get_words(savefile=get_abs_path(words_config['file']),
                      url=words_config['url'],
                      refetch=words_config['refetch'],
                      messenger=messenger)
    Precomputer.seed(store, words, config['seed']['openers'], config['seed']['expected_moves'], messenger)
    return 0

def precompute(config: dict, store: ResultStore, messenger: ConsoleMessenger,
               rank: bool = False, bootstrap: bool = False) -> int:
    vocabulary = store.vocabulary()
    if not vocabulary:
        raise MissingSeedError("The result store has no vocabulary, run the seed step first.")
    matrix_config = config['pattern_matrix']
    table = get_pattern_matrix(vocabulary,
                               savefile=get_abs_path(matrix_config['file']),
                               recompute=matrix_config['recompute'],
                               save=matrix_config['save'],
                               messenger=messenger)
    precomputer = Precomputer(store,
                              table,
                              max_rounds=config['search']['max_rounds'],
                              log_interval=config['search']['log_interval'],
                              messenger=messenger)
    if rank or bootstrap:
        precomputer.rank_openers(bootstrap=bootstrap)
    rows = precomputer.run_round_two()
    messenger.log(f"[INFO] Precomputation for round 2 complete! {len(rows)} rows, "
                  f"{sum(row.from_store for row in rows)} reused from the store.")
    return 0

def lookup(store: ResultStore, messenger: ConsoleMessenger, previous_guess: str, feedback: str, round_number: int) -> int:
    result = lookup_guess(store, previous_guess, feedback, round_number)
    pattern = pattern_to_str(validate_pattern(feedback))
    if result is None:
        messenger.log(f"No precomputed guess for round {round_number} after {previous_guess.upper()} {pattern}.")
        return 1
    note = "" if result.exact else " (estimate)"
    messenger.log(f"{previous_guess.upper()} {pattern} -> {result.guess} ({result.expected_moves:.4f} expected moves{note})")
    return 0

def run(argv: list[str] | None = None) -> int:
    args = parse_cli_args(argv)
    try:
        config = load_config(args)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return 2

    messenger = ConsoleMessenger()
    store = ResultStore(config['database']['url'], messenger=messenger)
    try:
        if args.command == "seed":
            return seed(config, store, messenger)
        if args.command == "precompute":
            return precompute(config, store, messenger, rank=args.rank, bootstrap=args.bootstrap)
        return lookup(store, messenger, args.previous_guess, args.feedback, args.round_number)
    except (InvalidWordError, InvalidPatternError, MissingSeedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except CacheWriteError as e:
        print(f"Error: {e}. Rows stored before the failure are kept, rerun to retry.", file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        print(f"Error: result store failure: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

def main() -> None:
    sys.exit(run())

if __name__ == "__main__":
    main()
