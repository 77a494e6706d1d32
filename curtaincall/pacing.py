"""Fixed-interval pacing between upstream calls."""

import time
from typing import Callable


class Pacer:
    """Cooperative delay inserted after each item and after each page.

    This is not a backoff: the delays are the same whether the previous
    call succeeded or failed.
    """

    def __init__(
        self,
        item_delay: float = 0.05,
        page_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.item_delay = item_delay
        self.page_delay = page_delay
        self._sleep = sleep

    def after_item(self) -> None:
        if self.item_delay > 0:
            self._sleep(self.item_delay)

    def after_page(self) -> None:
        if self.page_delay > 0:
            self._sleep(self.page_delay)
