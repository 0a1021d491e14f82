import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

from repocache.core.errors import InvalidInput

T = TypeVar("T")
R = TypeVar("R")


async def parallel_reduce(
    jobs: int,
    commands: Iterable[Callable[[], Awaitable[T]]],
    initial: R,
    merge: Callable[[R, T], R],
) -> R:
    """Run commands with bounded concurrency and fold their results.

    Commands are started in iteration order. As soon as one finishes, its result is
    merged into the accumulator and its slot goes to the next command. The merge
    function should be associative and commutative, since completion order is not
    deterministic.

    :param jobs: Max number of commands running at the same time
    :param commands: Zero-argument callables returning an awaitable
    :param initial: Starting value of the accumulator
    :param merge: Combines the accumulator with one command's result
    :return: The accumulator after every command has been merged
    :raise InvalidInput: If jobs is not a positive number
    """
    if jobs < 1:
        raise InvalidInput(f"Number of parallel jobs must be positive, got {jobs}")

    result = initial
    tasks: set[asyncio.Task] = set()

    async def _fold() -> set[asyncio.Task]:
        nonlocal result
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            result = merge(result, task.result())
        return pending

    try:
        for command in commands:
            if len(tasks) >= jobs:
                # Wait for some command to finish before adding a new one
                tasks = await _fold()
            tasks.add(asyncio.create_task(command()))  # type: ignore[arg-type]

        while tasks:
            tasks = await _fold()
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return result
