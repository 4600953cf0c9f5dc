"""
Run-scoped shared state.

One RunContext is owned by the spider for the whole run. Every mutation of
the pushed set and counter goes through ``accept_push``, which decides and
records under a single lock.
"""
import threading


class RunContext:
    """Discovered/pushed/visited sets and counters for one run."""

    def __init__(self, results_wanted, max_pages):
        self.results_wanted = results_wanted
        self.max_pages = max_pages
        self._lock = threading.Lock()
        self._discovered = set()
        self._pushed_urls = set()
        self._pushed = 0
        self._visited_pages = set()
        self._blocked_pages = set()
        self._fallback_used = False

    @property
    def pushed(self):
        return self._pushed

    @property
    def remaining(self):
        return max(self.results_wanted - self._pushed, 0)

    @property
    def quota_reached(self):
        return self._pushed >= self.results_wanted

    @property
    def discovered_count(self):
        return len(self._discovered)

    @property
    def blocked_count(self):
        return len(self._blocked_pages)

    def is_discovered(self, url):
        return url in self._discovered

    def is_pushed(self, url):
        return url in self._pushed_urls

    def accept_push(self, url):
        """
        Atomically accept url for the sink.

        Returns False for an already-pushed URL or when the quota is
        exhausted; otherwise records the URL and increments the counter.
        """
        with self._lock:
            if not url or url in self._pushed_urls or self._pushed >= self.results_wanted:
                return False
            self._discovered.add(url)
            self._pushed_urls.add(url)
            self._pushed += 1
            return True

    def mark_discovered(self, url):
        with self._lock:
            self._discovered.add(url)

    def mark_visited(self, url):
        with self._lock:
            self._visited_pages.add(url)

    def was_visited(self, url):
        return url in self._visited_pages

    def mark_blocked(self, url):
        with self._lock:
            self._blocked_pages.add(url)

    def claim_fallback(self):
        """
        True exactly once per run, and only while nothing has been pushed.
        """
        with self._lock:
            if self._fallback_used or self._pushed > 0:
                return False
            self._fallback_used = True
            return True
