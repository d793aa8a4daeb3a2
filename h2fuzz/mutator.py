from __future__ import annotations

import argparse
import random
import struct
import sys
from dataclasses import dataclass
from typing import Callable, Optional

from . import common, util

INTERESTING8 = [0, 1, 16, 32, 64, 100, 127, 128, 129, 255]
INTERESTING16 = [0, 128, 255, 256, 512, 1000, 1024, 4096, 32767, 65535]
INTERESTING32 = [0, 1, 32768, 65535, 65536, 100663045, 2147483647, 4294967295]
DIGITS = [ord(d) for d in "0123456789"]


@dataclass
class Config:
    max_insert_length: int = 10


def _add_packed(res: bytearray, pos: int, value: bytes) -> None:
    for i, v in enumerate(value):
        res[pos + i] = (res[pos + i] + v) % 256


def _pack(rand: random.Random, fmt: str, value: int) -> bytes:
    return struct.pack((">" if rand.getrandbits(1) else "<") + fmt, value)


def _mutate_remove_range_of_bytes(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 2:
        raise common.OutOfDataError
    start = rand.randrange(len(res))
    util.remove(data=res, start=start, length=util.choose_len(rand, len(res) - start))


def _mutate_insert_range_of_bytes(res: bytearray, rand: random.Random, config: Config) -> None:
    length = util.choose_len(rand, config.max_insert_length)
    data = bytes(rand.getrandbits(8) for _ in range(length))
    util.insert(data=res, start=rand.randrange(len(res) + 1), data_to_insert=data)


def _mutate_duplicate_range_of_bytes(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 2:
        raise common.OutOfDataError
    src = rand.randrange(len(res))
    dst = rand.randrange(len(res))
    n = util.choose_len(rand, len(res) - src)
    util.insert(res, dst, res[src : src + n])


def _mutate_copy_range_of_bytes(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 2:
        raise common.OutOfDataError
    src = rand.randrange(len(res))
    dst = rand.randrange(len(res))
    n = util.choose_len(rand, min(len(res) - src, len(res) - dst))
    util.copy(res, src, dst, n)


def _mutate_bit_flip(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 1:
        raise common.OutOfDataError
    res[rand.randrange(len(res))] ^= 1 << rand.randrange(8)


def _mutate_flip_random_bits_of_random_byte(
    res: bytearray,
    rand: random.Random,
    _: Config,
) -> None:
    if len(res) < 1:
        raise common.OutOfDataError
    res[rand.randrange(len(res))] ^= rand.randrange(255) + 1


def _mutate_swap_two_bytes(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 2:
        raise common.OutOfDataError
    src = rand.randrange(len(res))
    dst = rand.randrange(len(res))
    res[src], res[dst] = res[dst], res[src]


def _mutate_add_subtract_from_a_byte(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 1:
        raise common.OutOfDataError
    pos = rand.randrange(len(res))
    res[pos] = (res[pos] + rand.randrange(2**8)) % 256


def _mutate_add_subtract_from_a_uint16(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 2:
        raise common.OutOfDataError
    pos = rand.randrange(len(res) - 1)
    _add_packed(res, pos, _pack(rand, "H", rand.randrange(2**16)))


def _mutate_add_subtract_from_a_uint32(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 4:
        raise common.OutOfDataError
    pos = rand.randrange(len(res) - 3)
    _add_packed(res, pos, _pack(rand, "I", rand.randrange(2**32)))


def _mutate_add_subtract_from_a_uint64(res: bytearray, rand: random.Random, _: Config) -> None:
    if len(res) < 8:
        raise common.OutOfDataError
    pos = rand.randrange(len(res) - 7)
    _add_packed(res, pos, _pack(rand, "Q", rand.randrange(2**64)))


def _mutate_replace_a_byte_with_an_interesting_value(
    res: bytearray,
    rand: random.Random,
    _: Config,
) -> None:
    if len(res) < 1:
        raise common.OutOfDataError
    res[rand.randrange(len(res))] = rand.choice(INTERESTING8)


def _mutate_replace_an_uint16_with_an_interesting_value(
    res: bytearray,
    rand: random.Random,
    _: Config,
) -> None:
    if len(res) < 2:
        raise common.OutOfDataError
    pos = rand.randrange(len(res) - 1)
    res[pos : pos + 2] = _pack(rand, "H", rand.choice(INTERESTING16))


def _mutate_replace_an_uint32_with_an_interesting_value(
    res: bytearray,
    rand: random.Random,
    _: Config,
) -> None:
    if len(res) < 4:
        raise common.OutOfDataError
    pos = rand.randrange(len(res) - 3)
    res[pos : pos + 4] = _pack(rand, "I", rand.choice(INTERESTING32))


def _mutate_replace_an_ascii_digit_with_another_digit(
    res: bytearray,
    rand: random.Random,
    _: Config,
) -> None:
    digits_present = [i for i, b in enumerate(res) if b in DIGITS]
    if len(digits_present) < 1:
        raise common.OutOfDataError
    pos = rand.choice(digits_present)
    res[pos] = rand.choice([d for d in DIGITS if d != res[pos]])


Mutation = Callable[[bytearray, random.Random, Config], None]

MUTATORS: list[Mutation] = [
    _mutate_remove_range_of_bytes,
    _mutate_insert_range_of_bytes,
    _mutate_duplicate_range_of_bytes,
    _mutate_copy_range_of_bytes,
    _mutate_bit_flip,
    _mutate_flip_random_bits_of_random_byte,
    _mutate_swap_two_bytes,
    _mutate_add_subtract_from_a_byte,
    _mutate_add_subtract_from_a_uint16,
    _mutate_add_subtract_from_a_uint32,
    _mutate_add_subtract_from_a_uint64,
    _mutate_replace_a_byte_with_an_interesting_value,
    _mutate_replace_an_uint16_with_an_interesting_value,
    _mutate_replace_an_uint32_with_an_interesting_value,
    _mutate_replace_an_ascii_digit_with_another_digit,
]


class Mutator:
    def __init__(
        self,
        seed: Optional[int] = None,
        max_input_size: Optional[int] = None,
        max_modifications: int = 10,
        max_insert_length: int = 10,
    ):
        """
        Byte-level mutator producing the same output for the same input and seed.

        Arguments:
        ---------
        seed:               Seed of the random number generator. Use None to seed from
                            system entropy.
        max_input_size:     Truncate mutated data to this length, if set.
        max_modifications:  Maximum number of consecutive modifications per mutation.
        max_insert_length:  Maximum number of bytes to insert in a single modification.
        """
        if max_modifications < 1:
            raise ValueError(f"Number of modifications must be positive ({max_modifications})")
        self._rand = random.Random(seed)  # noqa: S311
        self._max_input_size = max_input_size
        self._max_modifications = max_modifications
        self._config = Config(max_insert_length=max_insert_length)

    def mutate(self, buf: bytes) -> bytes:
        res = bytearray(buf)
        nm = min(util.rand_exp(self._rand), self._max_modifications - 1) + 1
        while nm > 0:
            modify = self._rand.choice(MUTATORS)
            try:
                modify(res, self._rand, self._config)
            except common.OutOfDataError:
                pass
            else:
                nm -= 1

        if self._max_input_size and len(res) > self._max_input_size:
            res = res[: self._max_input_size]
        return bytes(res)


def pipe(m: Mutator) -> None:
    sys.stdout.buffer.write(m.mutate(sys.stdin.buffer.read()))
    sys.stdout.buffer.flush()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Byte-level mutation engine. Reads data from stdin, writes mutated data "
        "to stdout.",
    )
    parser.add_argument("--seed", type=int, help="Seed for deterministic mutation.")
    parser.add_argument(
        "--max-input-size",
        type=int,
        help="Truncate output to this number of bytes.",
    )
    parser.add_argument(
        "--max-modifications",
        type=int,
        default=10,
        help="Maximum number of modifications per mutation (default: %(default)s).",
    )
    args = parser.parse_args(argv)

    if args.max_modifications < 1:
        parser.error(f"Number of modifications must be positive ({args.max_modifications})")

    pipe(
        Mutator(
            seed=args.seed,
            max_input_size=args.max_input_size,
            max_modifications=args.max_modifications,
        ),
    )


if __name__ == "__main__":
    main()
