"""
Message flag validation.

The six low order bits of a message are independent flags, bit i being
flag i+1. Higher bits carry no flags and are ignored. A message is valid when:

  1. if flag 1 is set, every other flag is clear,
  2. if flag 2 is set, flag 3 is set,
  3. if flag 4 is set, flags 5 and 6 are clear.
"""

from enum import IntFlag


class Flag(IntFlag):
    F1 = 0b000001
    F2 = 0b000010
    F3 = 0b000100
    F4 = 0b001000
    F5 = 0b010000
    F6 = 0b100000


def message_flags(message: int) -> tuple[bool, bool, bool, bool, bool, bool]:
    return tuple(message & mask == mask for mask in Flag)


def validate_message(message: int) -> bool:
    flag1, flag2, flag3, flag4, flag5, flag6 = message_flags(message)

    # each implication A => B is written as (not A) or (A and B)
    condition1 = (not flag1) or (
        flag1 and not (flag2 or flag3 or flag4 or flag5 or flag6)
    )
    condition2 = (not flag2) or (flag2 and flag3)
    condition3 = (not flag4) or (flag4 and not (flag5 or flag6))

    return condition1 and condition2 and condition3
