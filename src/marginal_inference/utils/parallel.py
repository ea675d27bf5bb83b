"""Sequential or joblib-parallel evaluation of independent tasks."""

from typing import Any, Callable, Iterable, List, Optional

from joblib import Parallel, delayed
from tqdm import tqdm


def map_tasks(
    func: Callable[..., Any],
    arguments: Iterable[tuple],
    n_jobs: int = 1,
    backend: Optional[str] = None,
    verbose: bool = False,
    desc: str = "Evaluating",
    total: Optional[int] = None,
) -> List[Any]:
    """
    Apply `func` to every argument tuple, preserving order.

    n_jobs == 1 runs in-process. Any other value dispatches to
    joblib.Parallel.

    Args:
        func: Function called as func(*args)
        arguments: Iterable of argument tuples
        n_jobs: Number of workers (1 = sequential, -1 = all cores)
        backend: joblib backend ("loky", "threading", ...)
        verbose: Show progress
        desc: Progress bar label
        total: Number of tasks (for the progress bar)

    Returns:
        List of results in input order
    """
    if n_jobs == 1:
        iterator = arguments
        if verbose:
            iterator = tqdm(iterator, desc=desc, total=total, ncols=80)
        return [func(*args) for args in iterator]

    return Parallel(n_jobs=n_jobs, backend=backend, verbose=10 if verbose else 0)(
        delayed(func)(*args) for args in arguments
    )
