from __future__ import annotations

from blinker import Namespace

_signals = Namespace()

#: Sent with ``participant`` after an entry is committed.
entered = _signals.signal("entered")

#: Sent with ``winner``, ``amount`` and ``round_id`` after a payout is committed.
winner_picked = _signals.signal("winner-picked")
